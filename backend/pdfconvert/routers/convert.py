"""Convert endpoint (thin HTTP layer).

Delegates the full pipeline orchestration to `ConversionPipelineService`:
write config -> download -> x2t -> classify/upload -> background cleanup.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from ..deps import get_conversion_service
from ..exceptions import ConversionError
from ..models import ConversionRequest, ErrorResponse
from ..services.orchestration.conversion_pipeline import ConversionPipelineService

router = APIRouter(tags=["convert"])
logger = logging.getLogger(__name__)


@router.post(
    "/convert",
    status_code=200,
    responses={500: {"model": ErrorResponse, "description": "Conversion failed"}},
)
async def convert(
    payload: ConversionRequest,
    service: ConversionPipelineService = Depends(get_conversion_service),
) -> Response:
    """Convert gs://source_bucket/source_key to PDF at gs://dest_bucket/dest_key.

    Returns 200 with an empty body on success, otherwise 500 with
    `{reason, x2t_code, message}`.
    """
    try:
        await service.convert(payload)
    except ConversionError as exc:
        return JSONResponse(status_code=500, content=exc.to_response().model_dump())
    return Response(status_code=200)
