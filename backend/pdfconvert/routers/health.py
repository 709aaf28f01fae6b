"""Health and readiness endpoints."""
from __future__ import annotations

from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..config import ConverterConfig
from ..deps import get_converter_config
from ..services.converter import X2T_BIN

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict:
    """Liveness probe endpoint."""
    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readyz")
async def readyz(config: ConverterConfig | None = Depends(get_converter_config)):
    """Readiness probe: the converter, fonts and workspace root must still exist."""
    if config is None:
        return JSONResponse(status_code=503, content={"status": "starting"})

    checks = {
        "converter": (config.converter_dir / X2T_BIN).is_file(),
        "fonts": config.fonts_dir.is_dir(),
        "tempRoot": config.temp_root.is_dir(),
    }
    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ok" if ready else "degraded", "checks": checks},
    )
