"""
Budowa odpowiedzi Parameters dla jednej ewaluacji.

Struktura odpowiedzi:
  parameters   — evaluator, expression, resource, parseDebugTree, parseDebugTreeJs
  result       — wartości wyniku (pełna wierność) + części "trace" dla trace()
  debug-trace  — po jednej części na snapshot, nazwanej node_label(),
                 z wartościami wyniku, this-* i focus-* oraz opcjonalnym index
"""
from __future__ import annotations

import json

from adapters.trace.position_resolver import node_label
from contracts import (
    DisplayNode,
    Parameters,
    RawNode,
    RawValue,
    TaggedParameter,
    TraceCall,
    TraceSnapshot,
)
from ports.value_classifier import ValueClassifier


class ParametersBuilder:
    def __init__(self, classifier: ValueClassifier) -> None:
        self._classifier = classifier

    def build(
        self,
        *,
        expression: str,
        evaluator: str,
        display_tree: DisplayNode,
        raw_tree: RawNode,
        results: list[RawValue],
        trace_calls: list[TraceCall],
        snapshots: list[TraceSnapshot],
    ) -> Parameters:
        header = TaggedParameter(name="parameters", part=[
            TaggedParameter(name="evaluator", value_string=evaluator),
            TaggedParameter(name="expression", value_string=expression),
            TaggedParameter(name="resource"),
            TaggedParameter(
                name="parseDebugTree",
                value_string=json.dumps(display_tree.to_json_dict(), indent=2),
            ),
            TaggedParameter(
                name="parseDebugTreeJs",
                value_string=json.dumps(
                    raw_tree.model_dump(by_alias=True, exclude_none=True), indent=2
                ),
            ),
        ])

        result_parts = self._classify_all(results, full_fidelity=True)
        for call in trace_calls:
            result_parts.append(TaggedParameter(
                name="trace",
                value_string=call.label,
                part=self._classify_all(call.values, full_fidelity=True) or None,
            ))
        result = TaggedParameter(name="result", part=result_parts or None)

        debug_trace = TaggedParameter(
            name="debug-trace",
            part=[self._snapshot_part(expression, s) for s in snapshots] or None,
        )
        return Parameters(parameter=[header, result, debug_trace])

    # -- Prywatne ----------------------------------------------------------

    def _classify_all(self, values: list[RawValue], full_fidelity: bool) -> list[TaggedParameter]:
        return [self._classifier.classify(v, full_fidelity) for v in values]

    def _prefixed(self, values: list[RawValue], prefix: str) -> list[TaggedParameter]:
        return [
            p.model_copy(update={"name": prefix + p.name})
            for p in self._classify_all(values, full_fidelity=False)
        ]

    def _snapshot_part(self, expression: str, snapshot: TraceSnapshot) -> TaggedParameter:
        parts = self._classify_all(snapshot.values, full_fidelity=False)
        parts += self._prefixed(snapshot.this_values, "this-")
        parts += self._prefixed(snapshot.focus_values, "focus-")
        if snapshot.index is not None:
            parts.append(TaggedParameter(name="index", value_integer=snapshot.index))
        return TaggedParameter(name=node_label(expression, snapshot), part=parts or None)
