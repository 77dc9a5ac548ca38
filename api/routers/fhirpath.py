"""
Router: POST /fhirpath, POST /$fhirpath

Przyjmuje zasób Parameters (application/json lub application/fhir+json),
ewaluuje wyrażenie i zwraca Parameters z wynikiem, trace() i debug-trace.
Błędy zwracane są jako OperationOutcome (HTTP 400).
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from adapters.evaluation_service import EvaluationService
from adapters.request.input_parameters import InvalidRequestError, read_evaluation_request
from api.dependencies import get_evaluation_service
from contracts import OperationOutcome

logger = logging.getLogger("fhirpath_debug.api")

router = APIRouter(tags=["fhirpath"])

FHIR_JSON = "application/fhir+json"


def _outcome(code: str, message: str) -> JSONResponse:
    outcome = OperationOutcome.create("error", code, message)
    return JSONResponse(status_code=400, content=outcome.to_fhir(), media_type=FHIR_JSON)


@router.post("/fhirpath")
@router.post("/$fhirpath")
async def evaluate_fhirpath(
    request: Request,
    service: EvaluationService = Depends(get_evaluation_service),
) -> JSONResponse:
    # ciało czytane ręcznie: application/fhir+json nie jest parsowane przez FastAPI
    try:
        body = await request.json()
    except ValueError:
        body = None
    logger.debug("%s %s body type: %s", request.method, request.url.path, type(body).__name__)

    try:
        eval_request = read_evaluation_request(body)
    except InvalidRequestError as exc:
        return _outcome(exc.code, exc.message)

    try:
        result = service.evaluate(eval_request)
    except Exception as exc:
        logger.warning("FHIRPath evaluation failed: %s", exc)
        return _outcome("invalid", f"Error processing request: {exc}")

    return JSONResponse(content=result.to_fhir(), media_type=FHIR_JSON)
