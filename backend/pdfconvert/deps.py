"""FastAPI dependencies (e.g., the conversion pipeline built at startup)."""
from __future__ import annotations

from fastapi import HTTPException, Request

from .config import ConverterConfig
from .services.orchestration.conversion_pipeline import ConversionPipelineService


def get_conversion_service(request: Request) -> ConversionPipelineService:
    """Return the pipeline created by the application lifespan.

    Raises 503 when startup has not finished wiring the service.
    """
    service = getattr(request.app.state, "pipeline", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Conversion service not initialised")
    return service


def get_converter_config(request: Request) -> ConverterConfig | None:
    service = getattr(request.app.state, "pipeline", None)
    return service.config if service is not None else None
