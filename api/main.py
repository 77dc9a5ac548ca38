"""
api/main.py — punkt wejścia FastAPI.

Lifespan:
  - Tworzy silnik FHIRPath (fhirpathpy) dla modelu z config.fhir_model,
    chyba że create_app() dostał gotowy silnik (np. w testach)
  - Składa EvaluationService z simplifierem drzewa i klasyfikatorem wartości
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.ast_simplifier.display_tree_simplifier import DisplayTreeSimplifier
from adapters.evaluation_service import EvaluationService
from adapters.value_classifier.parameter_classifier import ParameterClassifier
from api.routers import fhirpath
from api.schemas import HealthResponse, ServiceInfo
from config import Settings
from ports.path_engine import PathEngine

logger = logging.getLogger("fhirpath_debug")


def _build_service(engine: PathEngine, settings: Settings) -> EvaluationService:
    return EvaluationService(
        engine=engine,
        simplifier=DisplayTreeSimplifier(),
        classifier=ParameterClassifier(),
        fhir_model=settings.fhir_model,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    if app.state.evaluation_service is None:
        # fhirpathpy ładuje modele FHIR przy imporcie
        from adapters.path_engine.fhirpathpy_engine import FhirpathpyEngine

        logger.info("Loading FHIRPath engine (model %s)...", settings.fhir_model)
        app.state.evaluation_service = _build_service(FhirpathpyEngine(settings.fhir_model), settings)

    logger.info("%s ready (%s).", settings.app_title, app.state.evaluation_service.evaluator_label)
    yield
    logger.info("Shutting down.")


def create_app(settings: Optional[Settings] = None, engine: Optional[PathEngine] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.evaluation_service = _build_service(engine, settings) if engine is not None else None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Routers
    app.include_router(fhirpath.router)

    @app.get("/", response_model=ServiceInfo, tags=["health"])
    async def index():
        return ServiceInfo(
            message=f"{settings.app_title} is running!",
            endpoints={
                "/fhirpath": "POST - Evaluate FHIRPath expressions",
                "/$fhirpath": "POST - Evaluate FHIRPath expressions",
                "/health": "GET - Health check",
            },
        )

    # Health
    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health():
        return HealthResponse(status="healthy", timestamp=datetime.now(tz=timezone.utc))

    return app


app = create_app()
