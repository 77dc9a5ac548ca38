from __future__ import annotations

from adapters.trace.debug_tracer import DebugTracer
from contracts import RawNode, RawValue, SourcePosition


def _node(kind: str, text: str, line: int = 1, column: int = 1, length: int | None = None) -> RawNode:
    return RawNode(kind=kind, text=text, start=SourcePosition(line=line, column=column), length=length)


def _value(data) -> RawValue:
    return RawValue(type_name="String", data=data)


def test_tracer_ignores_nodes_outside_allow_list():
    tracer = DebugTracer()

    tracer.on_node(_node("TermExpression", "name"), [], [], [_value("x")])
    tracer.on_node(_node("InvocationExpression", "a.b"), [], [], [])

    assert tracer.snapshots == []


def test_tracer_records_snapshot_with_zero_based_position():
    tracer = DebugTracer()
    focus = [_value("f")]
    this = [_value("t")]
    result = [_value("r1"), _value("r2")]

    tracer.on_node(_node("MemberInvocation", "given", line=2, column=3, length=5), focus, this, result, index=1)

    snapshot = tracer.snapshots[0]
    assert snapshot.name == "given"
    assert snapshot.kind == "MemberInvocation"
    assert (snapshot.line, snapshot.column, snapshot.length) == (1, 2, 5)
    assert snapshot.values == result
    assert snapshot.this_values == this
    assert snapshot.focus_values == focus
    assert snapshot.index == 1
    assert snapshot.total_values is None


def test_tracer_renames_literals_and_indexers():
    tracer = DebugTracer()

    tracer.on_node(_node("LiteralTerm", "'official'"), [], [], [])
    tracer.on_node(_node("IndexerExpression", "name[0]"), [], [], [])

    assert [s.name for s in tracer.snapshots] == ["constant", "[]"]


def test_tracer_keeps_visit_order():
    tracer = DebugTracer()

    for text in ("a", "b", "c"):
        tracer.on_node(_node("MemberInvocation", text), [], [], [])

    assert [s.name for s in tracer.snapshots] == ["a", "b", "c"]


def test_tracer_records_trace_calls_and_log_lines():
    tracer = DebugTracer()

    tracer.on_trace("names", [_value("Peter"), _value("Jim")])
    tracer.on_node(_node("MemberInvocation", "name", column=9, length=4), [_value("p")], [], [_value("n")])

    assert tracer.trace_calls[0].label == "names"
    assert len(tracer.trace_calls[0].values) == 2
    assert tracer.log_lines("Patient.name") == ["8,4,name: focus=1 result=1  type=MemberInvocation"]
