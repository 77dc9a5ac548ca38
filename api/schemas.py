"""
schemas.py — Response modele FastAPI poza zasobami FHIR.
Zasoby FHIR (Parameters, OperationOutcome) są w contracts.py.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


# ─────────────────────────── / ───────────────────────────────────

class ServiceInfo(BaseModel):
    message: str
    endpoints: dict[str, str]


# ─────────────────────────── /health ─────────────────────────────

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
