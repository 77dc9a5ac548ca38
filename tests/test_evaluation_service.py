from __future__ import annotations

import json
import logging

import pytest

from adapters.ast_simplifier.display_tree_simplifier import DisplayTreeSimplifier
from adapters.evaluation_service import EvaluationService
from adapters.value_classifier.parameter_classifier import ParameterClassifier
from contracts import EvaluationRequest, RawNode, RawValue, SourcePosition
from ports.path_engine import PathEngine

EXPRESSION = "name.given"

PARSED = RawNode(
    kind="InvocationExpression",
    text=EXPRESSION,
    children=[
        RawNode(kind="TermExpression", text="name", children=[
            RawNode(kind="InvocationTerm", text="name", children=[
                RawNode(kind="MemberInvocation", text="name", children=[RawNode(kind="Identifier", text="name")]),
            ]),
        ]),
        RawNode(kind="MemberInvocation", text="given", children=[RawNode(kind="Identifier", text="given")]),
    ],
)

PATIENT = {"resourceType": "Patient", "name": [{"given": ["Peter", "James"]}]}


def _given(value: str, i: int) -> RawValue:
    return RawValue(type_name="String", fhir_type="string", data=value, field_path=f"Patient.name[0].given[{i}]")


class _StubEngine:
    name = "stub"
    version = "1.0"

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple] = []

    def parse(self, expression: str) -> RawNode:
        return PARSED

    def evaluate(self, resource, expression, variables, tracer):
        self.calls.append((resource, expression, variables))
        if self.fail:
            raise RuntimeError("boom")
        name = RawValue(type_name="Object", fhir_type="HumanName", data=PATIENT["name"][0], field_path="Patient.name[0]")
        patient = RawValue(type_name="Patient", data=PATIENT)
        given = [_given("Peter", 0), _given("James", 1)]

        tracer.on_node(RawNode(kind="TermExpression", text="name"), [patient], [patient], [name])
        tracer.on_node(
            RawNode(kind="MemberInvocation", text="name", start=SourcePosition(line=1, column=1), length=4),
            [patient], [patient], [name],
        )
        tracer.on_trace("given", given)
        tracer.on_node(
            RawNode(kind="MemberInvocation", text="given", start=SourcePosition(line=1, column=6), length=5),
            [name], [patient], given, index=0,
        )
        return given


def _service(engine: _StubEngine) -> EvaluationService:
    return EvaluationService(
        engine=engine,
        simplifier=DisplayTreeSimplifier(),
        classifier=ParameterClassifier(),
        fhir_model="r4",
    )


def _by_name(parts):
    return {p.name: p for p in parts}


def test_stub_engine_satisfies_port():
    assert isinstance(_StubEngine(), PathEngine)


def test_response_has_three_top_level_parameters():
    output = _service(_StubEngine()).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))

    assert output.resource_type == "Parameters"
    assert [p.name for p in output.parameter] == ["parameters", "result", "debug-trace"]


def test_header_parameters():
    output = _service(_StubEngine()).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))

    header = _by_name(output.parameter[0].part)
    assert header["evaluator"].value_string == "stub-1.0 (r4)"
    assert header["expression"].value_string == EXPRESSION
    assert header["resource"].populated_slots() == []

    tree = json.loads(header["parseDebugTree"].value_string)
    assert tree["ExpressionType"] == "ChildExpression"
    assert tree["Name"] == "given"
    assert tree["Arguments"][0]["Name"] == "name"

    raw = json.loads(header["parseDebugTreeJs"].value_string)
    assert raw["type"] == "InvocationExpression"
    assert "  " in header["parseDebugTree"].value_string


def test_result_values_and_trace_parts():
    output = _service(_StubEngine()).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))

    result = output.parameter[1].part
    assert [p.name for p in result] == ["string", "string", "trace"]
    assert [p.value_string for p in result[:2]] == ["Peter", "James"]
    assert result[0].extension[0].value_string == "Patient.name[0].given[0]"

    trace = result[2]
    assert trace.value_string == "given"
    assert [p.value_string for p in trace.part] == ["Peter", "James"]


def test_debug_trace_parts_follow_visit_order():
    output = _service(_StubEngine()).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))

    debug = output.parameter[2].part
    assert [p.name for p in debug] == ["0,4,name", "5,5,given"]

    given = debug[1].part
    names = [p.name for p in given]
    assert names[:2] == ["string", "string"]
    assert "this-Patient" in names
    assert "focus-HumanName" in names
    assert given[-1].name == "index"
    assert given[-1].value_integer == 0


def test_debug_trace_uses_reduced_fidelity():
    output = _service(_StubEngine()).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))

    for snapshot in output.parameter[2].part:
        for part in snapshot.part:
            assert not any(ext.url.endswith("json-value") for ext in part.extension or [])


def test_variables_are_passed_to_engine():
    engine = _StubEngine()

    _service(engine).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT, variables={"limit": 4}))

    assert engine.calls == [(PATIENT, EXPRESSION, {"limit": 4})]


def test_engine_errors_propagate():
    with pytest.raises(RuntimeError, match="boom"):
        _service(_StubEngine(fail=True)).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))


def test_debug_log_lines_are_emitted(caplog):
    with caplog.at_level(logging.DEBUG, logger="fhirpath_debug.evaluation_service"):
        _service(_StubEngine()).evaluate(EvaluationRequest(expression=EXPRESSION, resource=PATIENT))

    assert "5,5,given: focus=1 result=2  type=MemberInvocation" in caplog.messages
