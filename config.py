"""
config.py — Konfiguracja aplikacji przez zmienne środowiskowe.
Wszystkie zmienne mają prefiks FHIRPATH_DEBUG_.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Logging
    log_level: str = "INFO"

    # Silnik FHIRPath (model struktur FHIR: r4, r5, stu3, dstu2)
    fhir_model: str = "r4"

    # App
    app_title: str = "FHIRPath Debug API"
    app_version: str = "0.1.0"

    model_config = SettingsConfigDict(env_prefix="FHIRPATH_DEBUG_", env_file=".env", extra="ignore")
