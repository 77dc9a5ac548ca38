"""
contracts.py — Jedyne źródło prawdy dla wszystkich typów danych serwisu.
Wszystkie moduły importują WYŁĄCZNIE stąd. Nie modyfikować bez versioning.

Nazwy pól po stronie JSON (aliasy) odpowiadają zasobom FHIR (Parameters,
OperationOutcome) oraz formatowi drzewa debug używanego przez UI.
"""
from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

CONTRACTS_VERSION = "1.0.0"

RESOURCE_PATH_EXTENSION_URL = "http://fhir.forms-lab.com/StructureDefinition/resource-path"
JSON_VALUE_EXTENSION_URL = "http://fhir.forms-lab.com/StructureDefinition/json-value"

UCUM_SYSTEM = "http://unitsofmeasure.org"
CALENDAR_UNITS_SYSTEM = "http://hl7.org/fhirpath/CodeSystem/calendar-units"


# ─────────────────────────── Parse tree (parser) ─────────────────────────

class SourcePosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int     # 1-based
    column: int   # 1-based


class RawNode(BaseModel):
    """Węzeł surowego drzewa parsera (jak zwraca silnik FHIRPath)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kind: str = Field(alias="type")
    text: Optional[str] = None
    delimited_text: Optional[str] = Field(default=None, alias="delimitedText")
    start: Optional[SourcePosition] = None
    length: Optional[int] = None
    children: Optional[list[RawNode]] = None


# ─────────────────────────── Display tree ────────────────────────────────

class DisplayNode(BaseModel):
    """Uproszczony węzeł drzewa do prezentacji (parseDebugTree)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: str = Field(alias="ExpressionType")
    name: str = Field(default="", alias="Name")
    children: Optional[list[DisplayNode]] = Field(default=None, alias="Arguments")
    return_type: Optional[str] = Field(default=None, alias="ReturnType")
    line: Optional[int] = Field(default=None, alias="Line")
    column: Optional[int] = Field(default=None, alias="Column")
    length: Optional[int] = Field(default=None, alias="Length")

    @field_validator("children")
    @classmethod
    def _drop_empty_children(cls, v: Optional[list[DisplayNode]]) -> Optional[list[DisplayNode]]:
        # pusta lista nigdy nie jest reprezentowana
        return v or None

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ─────────────────────────── Evaluated values ────────────────────────────

class TypedScalar(BaseModel):
    """Rozłożona wartość typu z rodziny date/time/quantity."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["instant", "date", "dateTime", "time", "quantity"]
    text: Optional[str] = None                  # postać tekstowa (date/time)
    value: Optional[Union[int, float]] = None   # quantity
    unit: Optional[str] = None                  # quantity, np. "'mg'" lub "year"


class RawValue(BaseModel):
    """
    Jedna wartość wyniku ewaluacji.

    type_name  — ogólny tag typu (np. "String", "Number", "Object")
    fhir_type  — tag typu FHIR, jeśli wartość pochodzi z zasobu
    field_path — pełna ścieżka pola w zasobie (np. "Patient.name[0].given[1]")
    scalar     — rozłożona wartość date/time/quantity
    """
    model_config = ConfigDict(frozen=True)

    type_name: str = "Object"
    fhir_type: Optional[str] = None
    data: Any = None
    field_path: Optional[str] = None
    scalar: Optional[TypedScalar] = None


# ─────────────────────────── FHIR output types ───────────────────────────

class _FhirModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_fhir(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Quantity(_FhirModel):
    value: Optional[Union[int, float]] = None
    comparator: Optional[str] = None
    unit: Optional[str] = None
    system: Optional[str] = None
    code: Optional[str] = None


class Extension(_FhirModel):
    url: str
    value_string: Optional[str] = None


# wszystkie pola value[x] obsługiwane przez TaggedParameter
VALUE_SLOTS: tuple[str, ...] = (
    "value_string",
    "value_boolean",
    "value_code",
    "value_date",
    "value_instant",
    "value_date_time",
    "value_time",
    "value_integer",
    "value_decimal",
    "value_quantity",
    "value_human_name",
    "value_uri",
    "value_url",
    "value_canonical",
    "value_id",
    "value_markdown",
    "value_oid",
    "value_uuid",
    "value_positive_int",
    "value_unsigned_int",
    "value_coding",
)


class TaggedParameter(_FhirModel):
    """Parameters.parameter — co najwyżej jedno pole value[x]."""
    name: str
    value_string: Optional[str] = None
    value_boolean: Optional[bool] = None
    value_code: Optional[str] = None
    value_date: Optional[str] = None
    value_instant: Optional[str] = None
    value_date_time: Optional[str] = None
    value_time: Optional[str] = None
    value_integer: Optional[int] = None
    value_decimal: Optional[Union[int, float]] = None
    value_quantity: Optional[Quantity] = None
    value_human_name: Optional[dict[str, Any]] = None
    value_uri: Optional[str] = None
    value_url: Optional[str] = None
    value_canonical: Optional[str] = None
    value_id: Optional[str] = None
    value_markdown: Optional[str] = None
    value_oid: Optional[str] = None
    value_uuid: Optional[str] = None
    value_positive_int: Optional[int] = None
    value_unsigned_int: Optional[int] = None
    value_coding: Optional[dict[str, Any]] = None
    resource: Optional[dict[str, Any]] = None
    part: Optional[list[TaggedParameter]] = None
    extension: Optional[list[Extension]] = None

    @model_validator(mode="after")
    def _single_value_slot(self) -> TaggedParameter:
        populated = self.populated_slots()
        if len(populated) > 1:
            raise ValueError(f"Parameter {self.name!r} has more than one value[x]: {populated}")
        return self

    def populated_slots(self) -> list[str]:
        return [slot for slot in VALUE_SLOTS if getattr(self, slot) is not None]

    def extension_value(self, url: str) -> Optional[str]:
        for ext in self.extension or []:
            if ext.url == url:
                return ext.value_string
        return None


class Parameters(_FhirModel):
    resource_type: Literal["Parameters"] = "Parameters"
    parameter: list[TaggedParameter] = Field(default_factory=list)


class IssueDetails(_FhirModel):
    text: str
    coding: Optional[list[dict[str, Any]]] = None


class OperationOutcomeIssue(_FhirModel):
    severity: Literal["fatal", "error", "warning", "information"]
    code: str   # np. "invalid", "required", "processing"
    details: Optional[IssueDetails] = None
    diagnostics: Optional[str] = None


class OperationOutcome(_FhirModel):
    resource_type: Literal["OperationOutcome"] = "OperationOutcome"
    issue: list[OperationOutcomeIssue] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        severity: Literal["fatal", "error", "warning", "information"],
        code: str,
        message: str,
        coding: Optional[dict[str, Any]] = None,
        diagnostics: Optional[str] = None,
    ) -> OperationOutcome:
        """Tworzy OperationOutcome z pojedynczym issue (odpowiedzi błędów)."""
        details = IssueDetails(text=message, coding=[coding] if coding else None)
        return cls(issue=[OperationOutcomeIssue(
            severity=severity,
            code=code,
            details=details,
            diagnostics=diagnostics,
        )])


# ─────────────────────────── Debug trace ─────────────────────────────────

class TraceSnapshot(BaseModel):
    """Stan ewaluatora zarejestrowany w jednym odwiedzonym węźle."""
    name: str
    kind: str
    line: Optional[int] = None     # 0-based
    column: Optional[int] = None   # 0-based
    length: Optional[int] = None
    values: list[RawValue] = Field(default_factory=list)
    this_values: list[RawValue] = Field(default_factory=list)
    focus_values: list[RawValue] = Field(default_factory=list)
    total_values: Optional[list[RawValue]] = None
    index: Optional[int] = None


class TraceCall(BaseModel):
    """Jawne wywołanie trace() w wyrażeniu."""
    label: str
    values: list[RawValue] = Field(default_factory=list)


# ─────────────────────────── Evaluation request ──────────────────────────

class EvaluationRequest(BaseModel):
    expression: str
    resource: dict[str, Any]
    variables: dict[str, Any] = Field(default_factory=dict)


RawNode.model_rebuild()
DisplayNode.model_rebuild()
TaggedParameter.model_rebuild()
