"""
Odczyt wejściowego zasobu Parameters dla operacji $fhirpath.

Wymagane części:
  expression — valueString z wyrażeniem
  resource   — zasób inline lub rozszerzenie json-value z JSON-em zasobu
Opcjonalne:
  variables  — części z wartościami zmiennych (%name)
"""
from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import ValidationError

from adapters.request.variables import read_variables
from contracts import JSON_VALUE_EXTENSION_URL, EvaluationRequest, Parameters, TaggedParameter


class InvalidRequestError(ValueError):
    """Błąd danych wejściowych; code to kod issue FHIR (invalid, required)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _find(params: Parameters, name: str) -> Optional[TaggedParameter]:
    return next((p for p in params.parameter if p.name == name), None)


def _resource_from(param: Optional[TaggedParameter]) -> Optional[dict[str, Any]]:
    if param is None:
        return None
    if param.resource:
        return param.resource
    json_text = param.extension_value(JSON_VALUE_EXTENSION_URL)
    if json_text is None:
        return None
    try:
        resource = json.loads(json_text)
    except json.JSONDecodeError as exc:
        raise InvalidRequestError("invalid", f"Resource json-value is not valid JSON: {exc.msg}") from exc
    if not isinstance(resource, dict):
        raise InvalidRequestError("invalid", "Resource json-value must be a JSON object")
    return resource


def read_evaluation_request(body: Any) -> EvaluationRequest:
    """
    Waliduje ciało żądania i zwraca EvaluationRequest.
    Raises InvalidRequestError for a malformed body or missing parameters.
    """
    if not body:
        raise InvalidRequestError("invalid", "Request body is empty or malformed")
    if not isinstance(body, dict) or body.get("resourceType") != "Parameters":
        raise InvalidRequestError("invalid", "Expected FHIR Parameters resource")

    try:
        params = Parameters.model_validate(body)
    except ValidationError as exc:
        raise InvalidRequestError(
            "invalid", f"Malformed Parameters resource ({exc.error_count()} error(s))"
        ) from exc

    expression_param = _find(params, "expression")
    if expression_param is None or not expression_param.value_string:
        raise InvalidRequestError("required", "Missing required parameter: expression")

    resource = _resource_from(_find(params, "resource"))
    if resource is None:
        raise InvalidRequestError("required", "Missing required parameter: resource")

    variables_param = _find(params, "variables")
    variables = read_variables(variables_param.part or []) if variables_param else {}

    return EvaluationRequest(
        expression=expression_param.value_string,
        resource=resource,
        variables=variables,
    )
