"""
Adapter: FhirpathpyEngine
Implementuje port PathEngine na bibliotece fhirpathpy.

fhirpathpy zwraca drzewo parsera jako słowniki ({"type", "terminalNodeText",
"children"}, "text" tylko dla części węzłów), a w trakcie ewaluacji operuje
na ResourceNode (dane z zasobu + typ FHIR + rodzic) oraz typach FP_* dla
dat/czasów i ilości. Ten moduł tłumaczy je na RawNode i RawValue — jedyne
miejsce, w którym sprawdzamy typy wartości silnika.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from decimal import Decimal
from importlib.metadata import PackageNotFoundError, version as package_version
from typing import Any, Iterator, Optional

import fhirpathpy
import fhirpathpy.engine as fhirpath_engine
from fhirpathpy.engine import nodes
from fhirpathpy.models import models
from fhirpathpy.parser import parse as parse_expression

from contracts import RawNode, RawValue, TypedScalar
from ports.path_engine import EvaluationTracer

logger = logging.getLogger("fhirpath_debug.fhirpathpy_engine")


def _engine_classes(*names: str) -> tuple[type, ...]:
    # nie każda wersja fhirpathpy ma FP_Instant / FP_Date
    return tuple(cls for cls in (getattr(nodes, name, None) for name in names) if cls is not None)


# kolejność ma znaczenie: klasy pochodne przed bazowymi
_SCALAR_CLASSES: tuple[tuple[tuple[type, ...], str], ...] = (
    (_engine_classes("FP_Instant"), "instant"),
    (_engine_classes("FP_Date"), "date"),
    (_engine_classes("FP_DateTime"), "dateTime"),
    (_engine_classes("FP_Time"), "time"),
    (_engine_classes("FP_Quantity"), "quantity"),
)

_HUMAN_NAME_KEYS = {"use", "text", "family", "given", "prefix", "suffix", "period", "id", "extension"}

_OPENING_BRACKETS = ("(", "[", "{")
# węzły, w których nawias otwierający stoi po pierwszym dziecku: f(...), x[...]
_TRAILING_BRACKET_KINDS = {"Functn", "IndexerExpression"}


def _engine_version() -> str:
    try:
        return package_version("fhirpathpy")
    except PackageNotFoundError:
        return "unknown"


# -- Drzewo parsera --------------------------------------------------------

def _expression_root(tree: dict[str, Any]) -> dict[str, Any]:
    """Pomija korzeń bez typu i opakowanie EntireExpression."""
    node = tree
    while "type" not in node or node.get("type") == "EntireExpression":
        children = node.get("children") or []
        if len(children) != 1:
            raise ValueError("Parser returned no expression node")
        node = children[0]
    return node


def _terminals(node: dict[str, Any]) -> list[str]:
    terms = node.get("terminalNodeText") or []
    if isinstance(terms, str):
        return [terms]
    return [str(term) for term in terms]


def node_text(node: dict[str, Any]) -> str:
    """
    Tekst węzła parsera (jak getText() w ANTLR, bez białych znaków).
    fhirpathpy podaje "text" tylko dla części węzłów; pozostałe składamy
    z terminalNodeText i tekstu dzieci.
    """
    text = node.get("text")
    if text:
        return text

    children = [node_text(child) for child in node.get("children") or []]
    terms = _terminals(node)

    if terms and len(terms) == len(children) - 1:
        # operator binarny, lista argumentów: a = b, a.b, x, y
        parts = [children[0]]
        for term, child in zip(terms, children[1:]):
            parts += [term, child]
        return "".join(parts)

    if terms and terms[0] in _OPENING_BRACKETS:
        if children and node.get("type") in _TRAILING_BRACKET_KINDS:
            return children[0] + terms[0] + "".join(children[1:]) + "".join(terms[1:])
        return terms[0] + "".join(children) + "".join(terms[1:])

    return "".join(terms) + "".join(children)


def to_raw_node(node: dict[str, Any]) -> RawNode:
    return RawNode(
        kind=node.get("type", ""),
        text=node_text(node),
        delimited_text=node.get("delimitedText"),
        children=[to_raw_node(child) for child in node.get("children") or []] or None,
    )


# -- Wartości --------------------------------------------------------------

def _fhir_type_of(data: dict[str, Any]) -> str | None:
    if "value" in data and ("code" in data or "system" in data):
        return "Quantity"
    if data and set(data) <= _HUMAN_NAME_KEYS and ("family" in data or "given" in data):
        return "HumanName"
    return None


def _resource_type(data: Any) -> Optional[str]:
    if isinstance(data, dict) and data.get("resourceType"):
        return str(data["resourceType"])
    return None


def _field_path(node: Any) -> Optional[str]:
    """
    Pełna ścieżka pola z indeksami, np. "Patient.name[0].given[1]".
    Element szukany jest w danych rodzica po tożsamości obiektu.
    """
    path = getattr(node, "path", None)
    parent = getattr(node, "parentResNode", None)
    if parent is None:
        return _resource_type(node.data) or path

    prefix = _field_path(parent)
    parent_data = getattr(parent, "data", None)
    if prefix is None or not isinstance(parent_data, dict):
        return path

    key = (path or "").rsplit(".", 1)[-1]
    # typy wyboru: ścieżka "Observation.value", klucz "valueQuantity"
    keys = [k for k in parent_data if k == key] + [k for k in parent_data if k != key and k.startswith(key)]
    for candidate in keys:
        value = parent_data[candidate]
        if value is node.data:
            return f"{prefix}.{candidate}"
        if isinstance(value, list):
            for i, element in enumerate(value):
                if element is node.data:
                    return f"{prefix}.{candidate}[{i}]"
    return path


def _scalar_kind(item: Any) -> Optional[str]:
    for classes, kind in _SCALAR_CLASSES:
        if classes and isinstance(item, classes):
            return kind
    return None


def to_raw_value(item: Any) -> RawValue:
    """Wartość fhirpathpy → RawValue (tag ogólny, opcjonalnie tag FHIR, ścieżka i scalar)."""
    if isinstance(item, nodes.ResourceNode):
        type_info = item.get_type_info()
        fhir_type = getattr(type_info, "name", None)
        base = to_raw_value(item.data)
        return RawValue(
            type_name=base.type_name,
            fhir_type=fhir_type or base.fhir_type,
            data=item.data,
            field_path=_field_path(item),
            scalar=base.scalar,
        )

    kind = _scalar_kind(item)
    if kind == "quantity":
        scalar = TypedScalar(kind=kind, value=_plain_number(item.value), unit=item.unit)
        return RawValue(type_name=type(item).__name__, data=str(item), scalar=scalar)
    if kind is not None:
        text = getattr(item, "asStr", None) or str(item)
        if kind == "dateTime" and "T" not in text:
            kind = "date"
        return RawValue(type_name=type(item).__name__, data=text, scalar=TypedScalar(kind=kind, text=text))

    if isinstance(item, bool):
        return RawValue(type_name="Boolean", data=item)
    if isinstance(item, int):
        return RawValue(type_name="Integer", data=item)
    if isinstance(item, (float, Decimal)):
        return RawValue(type_name="Number", data=_plain_number(item))
    if isinstance(item, str):
        return RawValue(type_name="String", data=item)
    if isinstance(item, dict):
        return RawValue(
            type_name=_resource_type(item) or "Object",
            fhir_type=_fhir_type_of(item),
            data=item,
        )
    return RawValue(type_name=type(item).__name__, data=item)


def _plain_number(value: Any) -> int | float | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() and "." not in str(value) else float(value)
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


# -- Odwiedziny węzłów -----------------------------------------------------

class _NodeVisits:
    """Stan jednej ewaluacji: głębokość rekurencji i wynik najwyższego węzła."""

    def __init__(self) -> None:
        self.depth = 0
        self.root_result: Any = None
        self.texts: dict[int, str] = {}

    def header(self, node: dict[str, Any]) -> RawNode:
        """Węzeł bez dzieci; fhirpathpy nie podaje pozycji, więc length = len(text)."""
        text = self.texts.get(id(node))
        if text is None:
            text = self.texts[id(node)] = node_text(node)
        return RawNode(kind=node.get("type", ""), text=text, length=len(text) or None)


# fhirpathpy rekurencyjnie woła engine.do_eval; podmiana jest globalna dla modułu
_NODE_HOOK_LOCK = threading.Lock()


@contextmanager
def _node_visits(tracer: EvaluationTracer) -> Iterator[_NodeVisits]:
    visits = _NodeVisits()
    wrapped = getattr(fhirpath_engine, "do_eval", None)
    if wrapped is None:
        logger.warning("fhirpathpy.engine.do_eval not found, debug-trace will be empty")
        yield visits
        return

    def traced_do_eval(ctx: Any, parent_data: Any, node: dict[str, Any]) -> Any:
        visits.depth += 1
        try:
            result = wrapped(ctx, parent_data, node)
        finally:
            visits.depth -= 1
        if visits.depth == 0:
            visits.root_result = result

        this = index = None
        if isinstance(ctx, dict):
            this = ctx.get("$this")
            if this is None:
                this = ctx.get("dataRoot")
            index = ctx.get("$index")
        tracer.on_node(
            visits.header(node),
            focus=[to_raw_value(item) for item in _as_list(parent_data)],
            this=[to_raw_value(item) for item in _as_list(this)],
            result=[to_raw_value(item) for item in _as_list(result)],
            index=index if isinstance(index, int) and not isinstance(index, bool) else None,
        )
        return result

    with _NODE_HOOK_LOCK:
        fhirpath_engine.do_eval = traced_do_eval
        try:
            yield visits
        finally:
            fhirpath_engine.do_eval = wrapped


class FhirpathpyEngine:
    """Parsowanie i ewaluacja wyrażeń FHIRPath przez fhirpathpy."""

    name = "fhirpathpy"

    def __init__(self, fhir_model: str = "r4") -> None:
        if fhir_model not in models:
            raise ValueError(f"Unknown FHIR model: {fhir_model!r}")
        self._model_name = fhir_model
        self._model = models[fhir_model]
        self.version = _engine_version()

    @property
    def model_name(self) -> str:
        return self._model_name

    # -- PathEngine protocol -----------------------------------------------

    def parse(self, expression: str) -> RawNode:
        tree = parse_expression(expression)
        return to_raw_node(_expression_root(tree))

    def evaluate(
        self,
        resource: dict[str, Any],
        expression: str,
        variables: dict[str, Any],
        tracer: EvaluationTracer,
    ) -> list[RawValue]:
        def trace_fn(label: str, value: Any) -> None:
            tracer.on_trace(str(label), [to_raw_value(item) for item in _as_list(value)])

        environment = {"resource": resource, "rootResource": resource, **variables}
        logger.debug("Evaluating %r with %d variable(s)", expression, len(variables))
        with _node_visits(tracer) as visits:
            result = _as_list(fhirpathpy.evaluate(
                resource,
                expression,
                environment,
                self._model,
                options={"traceFn": trace_fn},
            ))

        # evaluate() zamienia ResourceNode na zwykłe dane; typy i ścieżki
        # bierzemy z wyniku najwyższego węzła, o ile liczności się zgadzają
        root = _as_list(visits.root_result)
        if visits.root_result is not None and len(root) == len(result):
            result = root
        return [to_raw_value(item) for item in result]
