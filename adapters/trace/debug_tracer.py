"""
Adapter: DebugTracer
Implementuje port EvaluationTracer — zbiera snapshoty stanu ewaluatora
dla węzłów istotnych w drzewie debug oraz jawne wywołania trace().

Snapshoty są dopisywane wyłącznie w kolejności odwiedzin węzłów;
kolejność ta jest zachowywana w odpowiedzi (debug-trace).
"""
from __future__ import annotations

import logging
from typing import Optional

from adapters.trace.position_resolver import format_label
from contracts import RawNode, RawValue, TraceCall, TraceSnapshot

logger = logging.getLogger("fhirpath_debug.debug_tracer")

TRACED_NODE_KINDS = frozenset({
    "LiteralTerm",
    "ExternalConstantTerm",
    "MemberInvocation",
    "FunctionInvocation",
    "ThisInvocation",
    "IndexInvocation",
    "TotalInvocation",
    "IndexerExpression",
    "PolarityExpression",
    "MultiplicativeExpression",
    "AdditiveExpression",
    "TypeExpression",
    "UnionExpression",
    "InequalityExpression",
    "EqualityExpression",
    "MembershipExpression",
    "AndExpression",
    "OrExpression",
    "ImpliesExpression",
})

# nazwy wyświetlane zamiast tekstu węzła
_DISPLAY_NAMES = {
    "LiteralTerm": "constant",
    "IndexerExpression": "[]",
}


class DebugTracer:
    """Zbiera TraceSnapshot i TraceCall dla jednego żądania."""

    def __init__(self) -> None:
        self.snapshots: list[TraceSnapshot] = []
        self.trace_calls: list[TraceCall] = []

    # -- EvaluationTracer protocol -----------------------------------------

    def on_node(
        self,
        node: RawNode,
        focus: list[RawValue],
        this: list[RawValue],
        result: list[RawValue],
        index: Optional[int] = None,
        total: Optional[list[RawValue]] = None,
    ) -> None:
        if node.kind not in TRACED_NODE_KINDS:
            return

        line = column = None
        if node.start is not None:
            # parser liczy od 1
            line, column = node.start.line - 1, node.start.column - 1

        self.snapshots.append(TraceSnapshot(
            name=_DISPLAY_NAMES.get(node.kind, node.text or ""),
            kind=node.kind,
            line=line,
            column=column,
            length=node.length,
            values=list(result),
            this_values=list(this),
            focus_values=list(focus),
            total_values=list(total) if total is not None else None,
            index=index,
        ))

    def on_trace(self, label: str, values: list[RawValue]) -> None:
        logger.debug("trace(%s): %d value(s)", label, len(values))
        self.trace_calls.append(TraceCall(label=label, values=list(values)))

    # -- Raportowanie ------------------------------------------------------

    def log_lines(self, source: str) -> list[str]:
        """Etykiety format_label dla wszystkich snapshotów (w kolejności)."""
        return [format_label(source, snapshot) for snapshot in self.snapshots]
