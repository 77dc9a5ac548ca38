from __future__ import annotations

import json

import pytest

from adapters.request.input_parameters import InvalidRequestError, read_evaluation_request
from adapters.request.variables import decode_variable_name, read_variables
from contracts import JSON_VALUE_EXTENSION_URL, TaggedParameter

PATIENT = {"resourceType": "Patient", "id": "example", "active": True}


def _body(*parameters: dict) -> dict:
    return {"resourceType": "Parameters", "parameter": list(parameters)}


def test_reads_expression_and_inline_resource():
    request = read_evaluation_request(_body(
        {"name": "expression", "valueString": "Patient.active"},
        {"name": "resource", "resource": PATIENT},
    ))

    assert request.expression == "Patient.active"
    assert request.resource == PATIENT
    assert request.variables == {}


def test_reads_resource_from_json_value_extension():
    request = read_evaluation_request(_body(
        {"name": "expression", "valueString": "id"},
        {"name": "resource", "extension": [{"url": JSON_VALUE_EXTENSION_URL, "valueString": json.dumps(PATIENT)}]},
    ))

    assert request.resource == PATIENT


def test_reads_variables():
    request = read_evaluation_request(_body(
        {"name": "expression", "valueString": "%limit"},
        {"name": "resource", "resource": PATIENT},
        {"name": "variables", "part": [
            {"name": "limit", "valueInteger": 4},
            {"name": "`flag`", "valueBoolean": False},
            {"name": "other", "resource": {"resourceType": "Basic"}},
        ]},
    ))

    assert request.variables == {"limit": 4, "flag": False, "other": {"resourceType": "Basic"}}


@pytest.mark.parametrize("body", [None, {}, b"", []])
def test_empty_body_is_invalid(body):
    with pytest.raises(InvalidRequestError) as exc_info:
        read_evaluation_request(body)

    assert exc_info.value.code == "invalid"


def test_wrong_resource_type_is_invalid():
    with pytest.raises(InvalidRequestError) as exc_info:
        read_evaluation_request({"resourceType": "Patient"})

    assert exc_info.value.code == "invalid"


def test_two_value_slots_are_invalid():
    with pytest.raises(InvalidRequestError) as exc_info:
        read_evaluation_request(_body({"name": "expression", "valueString": "a", "valueInteger": 1}))

    assert exc_info.value.code == "invalid"


def test_missing_expression_is_required():
    with pytest.raises(InvalidRequestError) as exc_info:
        read_evaluation_request(_body({"name": "resource", "resource": PATIENT}))

    assert exc_info.value.code == "required"
    assert "expression" in exc_info.value.message


def test_missing_resource_is_required():
    with pytest.raises(InvalidRequestError) as exc_info:
        read_evaluation_request(_body({"name": "expression", "valueString": "id"}))

    assert exc_info.value.code == "required"
    assert "resource" in exc_info.value.message


def test_bad_json_value_is_invalid():
    with pytest.raises(InvalidRequestError) as exc_info:
        read_evaluation_request(_body(
            {"name": "expression", "valueString": "id"},
            {"name": "resource", "extension": [{"url": JSON_VALUE_EXTENSION_URL, "valueString": "{not json"}]},
        ))

    assert exc_info.value.code == "invalid"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("plain", "plain"),
        ("`my var`", "my var"),
        ("'quoted'", "quoted"),
        (r"`tab\there`", "tab\there"),
        (r"`line\nbreak`", "line\nbreak"),
        (r"`\u0041BC`", "ABC"),
        (r"`back\`tick`", "back`tick"),
        ("`", "`"),
    ],
)
def test_decode_variable_name(raw, expected):
    assert decode_variable_name(raw) == expected


def test_variable_without_value_is_none():
    assert read_variables([TaggedParameter(name="empty")]) == {"empty": None}


def test_variable_zero_is_kept():
    assert read_variables([TaggedParameter(name="n", value_decimal=0)]) == {"n": 0}
