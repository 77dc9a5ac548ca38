from __future__ import annotations

import json

from fastapi.testclient import TestClient

from api.main import create_app
from config import Settings
from contracts import JSON_VALUE_EXTENSION_URL, RawNode, RawValue, SourcePosition

PATIENT = {"resourceType": "Patient", "id": "example", "active": True}


class _StubEngine:
    name = "stub"
    version = "1.0"

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    def parse(self, expression: str) -> RawNode:
        return RawNode(kind="MemberInvocation", text=expression, children=[RawNode(kind="Identifier", text=expression)])

    def evaluate(self, resource, expression, variables, tracer):
        if self.error is not None:
            raise self.error
        value = RawValue(type_name="Boolean", fhir_type="boolean", data=resource.get("active"), field_path="Patient.active")
        tracer.on_node(
            RawNode(kind="MemberInvocation", text=expression, start=SourcePosition(line=1, column=1), length=len(expression)),
            [RawValue(type_name="Patient", data=resource)], [], [value],
        )
        return [value]


def _client(engine: _StubEngine | None = None) -> TestClient:
    settings = Settings(fhir_model="r4", log_level="WARNING")
    return TestClient(create_app(settings=settings, engine=engine or _StubEngine()))


def _body(expression: str | None = "active", resource: dict | None = PATIENT) -> dict:
    parameters = []
    if expression is not None:
        parameters.append({"name": "expression", "valueString": expression})
    if resource is not None:
        parameters.append({"name": "resource", "resource": resource})
    return {"resourceType": "Parameters", "parameter": parameters}


def test_evaluate_returns_parameters_as_fhir_json():
    with _client() as client:
        response = client.post("/fhirpath", json=_body())

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/fhir+json")
    data = response.json()
    assert data["resourceType"] == "Parameters"
    assert [p["name"] for p in data["parameter"]] == ["parameters", "result", "debug-trace"]

    result = data["parameter"][1]["part"]
    assert result[0]["name"] == "boolean"
    assert result[0]["valueBoolean"] is True

    debug = data["parameter"][2]["part"]
    assert debug[0]["name"] == "0,6,active"


def test_dollar_operation_path_and_fhir_content_type():
    with _client() as client:
        response = client.post(
            "/$fhirpath",
            content=json.dumps(_body()),
            headers={"Content-Type": "application/fhir+json"},
        )

    assert response.status_code == 200
    header = {p["name"]: p for p in response.json()["parameter"][0]["part"]}
    assert header["evaluator"]["valueString"] == "stub-1.0 (r4)"
    assert header["expression"]["valueString"] == "active"


def test_resource_from_json_value_extension():
    body = _body(resource=None)
    body["parameter"].append({
        "name": "resource",
        "extension": [{"url": JSON_VALUE_EXTENSION_URL, "valueString": json.dumps(PATIENT)}],
    })

    with _client() as client:
        response = client.post("/fhirpath", json=body)

    assert response.status_code == 200


def _issue(response) -> dict:
    data = response.json()
    assert data["resourceType"] == "OperationOutcome"
    return data["issue"][0]


def test_wrong_resource_type_returns_operation_outcome():
    with _client() as client:
        response = client.post("/fhirpath", json={"resourceType": "Patient"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/fhir+json")
    issue = _issue(response)
    assert issue["severity"] == "error"
    assert issue["code"] == "invalid"


def test_malformed_body_is_invalid():
    with _client() as client:
        response = client.post("/fhirpath", content="{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert _issue(response)["code"] == "invalid"


def test_missing_expression_is_required():
    with _client() as client:
        response = client.post("/fhirpath", json=_body(expression=None))

    assert response.status_code == 400
    issue = _issue(response)
    assert issue["code"] == "required"
    assert "expression" in issue["details"]["text"]


def test_missing_resource_is_required():
    with _client() as client:
        response = client.post("/fhirpath", json=_body(resource=None))

    assert response.status_code == 400
    assert _issue(response)["code"] == "required"


def test_engine_error_returns_processing_message():
    with _client(_StubEngine(error=ValueError("unexpected token"))) as client:
        response = client.post("/fhirpath", json=_body())

    assert response.status_code == 400
    issue = _issue(response)
    assert issue["code"] == "invalid"
    assert issue["details"]["text"] == "Error processing request: unexpected token"


def test_health_and_index():
    with _client() as client:
        health = client.get("/health")
        index = client.get("/")

    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert index.status_code == 200
    assert "/$fhirpath" in index.json()["endpoints"]


def test_cors_preflight_is_allowed():
    with _client() as client:
        response = client.options(
            "/fhirpath",
            headers={"Origin": "http://example.org", "Access-Control-Request-Method": "POST"},
        )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
