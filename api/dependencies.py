"""
dependencies.py — FastAPI Dependency Injection.
Każda zależność zwraca odpowiedni serwis przez Request.app.state.
"""
from __future__ import annotations

from fastapi import Request

from adapters.evaluation_service import EvaluationService


def get_evaluation_service(request: Request) -> EvaluationService:
    return request.app.state.evaluation_service
