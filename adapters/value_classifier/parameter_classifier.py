"""
Adapter: ParameterClassifier
Implementuje port ValueClassifier — wybór dokładnie jednego pola value[x]
dla wartości wyniku FHIRPath.

Kolejność decyzji (pierwsza pasująca wygrywa):
  1. tag typu FHIR (fhir_type)         — np. "string", "code", "HumanName"
  2. ogólny tag typu (type_name)       — np. "String", "Number", "Long"
  3. rozłożona wartość (scalar.kind)   — instant, date, dateTime, time, quantity
  4. fallback:
       full_fidelity=True  → rozszerzenie json-value z surowymi danymi
       full_fidelity=False → parametr "resource-path" ze ścieżką pola

Ścieżka pola (jeśli znana) zawsze trafia do rozszerzenia resource-path.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from contracts import (
    CALENDAR_UNITS_SYSTEM,
    JSON_VALUE_EXTENSION_URL,
    RESOURCE_PATH_EXTENSION_URL,
    UCUM_SYSTEM,
    Extension,
    Quantity,
    RawValue,
    TaggedParameter,
    TypedScalar,
)

logger = logging.getLogger("fhirpath_debug.parameter_classifier")

RESOURCE_PATH_PARAMETER = "resource-path"

# (nazwa parametru, pole value[x], wartość)
_Slot = tuple[str, str, Any]


# -- Konwersje wartości ----------------------------------------------------

def _text(data: Any) -> Optional[str]:
    if data is None:
        return None
    if isinstance(data, bool):
        return "true" if data else "false"
    return str(data)


def _integer(data: Any) -> Optional[int]:
    if data is None or isinstance(data, bool):
        return None
    if isinstance(data, int):
        return data
    if isinstance(data, float):
        return int(data) if data.is_integer() else None
    try:
        return int(str(data).strip())
    except ValueError:
        return None


def _decimal(data: Any) -> Optional[int | float]:
    if data is None or isinstance(data, bool):
        return None
    if isinstance(data, (int, float)):
        return data
    try:
        return float(str(data))
    except ValueError:
        return None


def _mapping(data: Any) -> Optional[dict[str, Any]]:
    return data if isinstance(data, dict) else None


def _fhir_quantity(data: Any) -> Optional[Quantity]:
    if not isinstance(data, dict):
        return None
    return Quantity.model_validate(data)


def _strip_quotes(unit: str) -> str:
    if len(unit) >= 2 and unit.startswith("'") and unit.endswith("'"):
        return unit[1:-1]
    return unit


def resolve_quantity(value: Any, unit: Optional[str]) -> Quantity:
    """
    Quantity FHIRPath → FHIR Quantity z systemem jednostek.
    Jednostka w apostrofach to UCUM ('mg'), bez apostrofów to jednostka
    kalendarzowa (year, days, ...). Brak jednostki → UCUM "1".
    """
    if not unit:
        return Quantity(value=_decimal(value), unit="1", system=UCUM_SYSTEM, code="1")
    system = UCUM_SYSTEM if unit.startswith("'") else CALENDAR_UNITS_SYSTEM
    code = _strip_quotes(unit)
    return Quantity(value=_decimal(value), unit=code, system=system, code=code)


def to_json_text(data: Any) -> str:
    """JSON (wcięcie 2) dla dowolnych danych; obiekty spoza JSON jako tekst."""
    def _default(obj: Any) -> Any:
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        return str(obj)

    return json.dumps(data, indent=2, ensure_ascii=False, default=_default)


# -- Tabele dispatchu ------------------------------------------------------

# tag FHIR → (pole value[x], konwersja)
_FHIR_TYPES: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "string":        ("value_string", _text),
    "System.String": ("value_string", _text),
    "String":        ("value_string", _text),
    "boolean":       ("value_boolean", lambda data: data is True),
    "code":          ("value_code", _text),
    "date":          ("value_date", _text),
    "instant":       ("value_instant", _text),
    "dateTime":      ("value_date_time", _text),
    "time":          ("value_time", _text),
    "integer":       ("value_integer", _integer),
    "decimal":       ("value_decimal", _decimal),
    "Quantity":      ("value_quantity", _fhir_quantity),
    "HumanName":     ("value_human_name", _mapping),
    "uri":           ("value_uri", _text),
    "url":           ("value_url", _text),
    "canonical":     ("value_canonical", _text),
    "id":            ("value_id", _text),
    "markdown":      ("value_markdown", _text),
    "oid":           ("value_oid", _text),
    "uuid":          ("value_uuid", _text),
    "positiveInt":   ("value_positive_int", _integer),
    "unsignedInt":   ("value_unsigned_int", _integer),
    "Coding":        ("value_coding", _mapping),
}

# ogólny tag daty/czasu → (nazwa parametru, pole value[x])
_TEMPORAL_TYPES: dict[str, tuple[str, str]] = {
    "date":     ("date", "value_date"),
    "Date":     ("date", "value_date"),
    "dateTime": ("dateTime", "value_date_time"),
    "DateTime": ("dateTime", "value_date_time"),
    "time":     ("time", "value_time"),
    "Time":     ("time", "value_time"),
    "instant":  ("instant", "value_instant"),
    "Instant":  ("instant", "value_instant"),
}

# kolejność sprawdzania rozłożonych wartości
_SCALAR_PROBES: tuple[tuple[str, str, str], ...] = (
    ("instant", "instant", "value_instant"),
    ("date", "date", "value_date"),
    ("dateTime", "dateTime", "value_date_time"),
    ("time", "time", "value_time"),
)


class ParameterClassifier:
    """Klasyfikacja wartości FHIRPath do Parameters.parameter (FHIR R4B)."""

    # -- ValueClassifier protocol ------------------------------------------

    def classify(self, value: RawValue, full_fidelity: bool) -> TaggedParameter:
        name = value.fhir_type or value.type_name or "string"

        if value.fhir_type is not None:
            slot = self._by_fhir_type(value)
        else:
            slot = self._by_type_name(value)
        if slot is None:
            slot = self._by_scalar(value.scalar)

        extension: list[Extension] = []
        if value.field_path:
            extension.append(Extension(url=RESOURCE_PATH_EXTENSION_URL, value_string=value.field_path))

        if slot is not None:
            slot_name, field, data = slot
            return TaggedParameter(name=slot_name, extension=extension or None, **{field: data})

        # -- fallback
        if full_fidelity:
            logger.debug("No value[x] for %r, attaching JSON fallback.", name)
            extension.append(Extension(url=JSON_VALUE_EXTENSION_URL, value_string=to_json_text(value.data)))
            return TaggedParameter(name=name, extension=extension)
        if value.field_path:
            return TaggedParameter(name=RESOURCE_PATH_PARAMETER, value_string=value.field_path)
        return TaggedParameter(name=name)

    # -- Prywatne ----------------------------------------------------------

    @staticmethod
    def _by_fhir_type(value: RawValue) -> _Slot | None:
        entry = _FHIR_TYPES.get(value.fhir_type or "")
        if entry is None:
            return None
        field, convert = entry
        converted = convert(value.data)
        if converted is None:
            return None
        return value.fhir_type, field, converted

    @staticmethod
    def _by_type_name(value: RawValue) -> _Slot | None:
        type_name = value.type_name
        data = value.data

        if type_name == "String":
            text = _text(data)
            return ("string", "value_string", text) if text is not None else None
        if type_name == "Boolean":
            return ("boolean", "value_boolean", data) if isinstance(data, bool) else None

        if type_name in _TEMPORAL_TYPES:
            slot_name, field = _TEMPORAL_TYPES[type_name]
            text = value.scalar.text if value.scalar is not None and value.scalar.text else _text(data)
            return (slot_name, field, text) if text is not None else None

        if type_name in ("integer", "Integer", "Long"):
            # Long: wartość przez postać tekstową
            number = _integer(str(data) if type_name == "Long" and data is not None else data)
            return ("integer", "value_integer", number) if number is not None else None
        if type_name == "Decimal":
            number = _decimal(data)
            return ("decimal", "value_decimal", number) if number is not None else None
        if type_name == "Number":
            return _number_slot(data)

        if type_name == "Quantity":
            if value.scalar is not None and value.scalar.kind == "quantity":
                return "Quantity", "value_quantity", resolve_quantity(value.scalar.value, value.scalar.unit)
            if isinstance(data, dict) and "value" in data:
                return "Quantity", "value_quantity", resolve_quantity(data.get("value"), data.get("unit"))
        return None

    @staticmethod
    def _by_scalar(scalar: TypedScalar | None) -> _Slot | None:
        if scalar is None:
            return None
        for kind, slot_name, field in _SCALAR_PROBES:
            if scalar.kind == kind and scalar.text is not None:
                return slot_name, field, scalar.text
        if scalar.kind == "quantity":
            return "Quantity", "value_quantity", resolve_quantity(scalar.value, scalar.unit)
        return None


def _number_slot(data: Any) -> _Slot | None:
    """Number → integer gdy wartość całkowita bez '.', w przeciwnym razie decimal."""
    if data is None or isinstance(data, bool):
        return None
    if isinstance(data, int):
        return "integer", "value_integer", data
    text = str(data)
    try:
        number = float(text)
    except ValueError:
        return None
    if number.is_integer() and "." not in text and "e" not in text.lower():
        return "integer", "value_integer", int(number)
    return "decimal", "value_decimal", number
