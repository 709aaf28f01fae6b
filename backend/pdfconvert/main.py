"""
Main FastAPI application for the document to PDF conversion service.
"""
from fastapi import FastAPI
import logging
from contextlib import asynccontextmanager

from .config import ensure_temp_root, get_settings, resolve_converter_config
from .routers.convert import router as convert_router
from .routers.health import router as health_router
from .services.gcs import GCSService
from .services.orchestration.conversion_pipeline import ConversionPipelineService
from .services.workspace import WorkspaceReaper


settings = get_settings()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup; ConfigurationError aborts startup and is left to the supervisor
    logging.basicConfig(level=settings.LOG_LEVEL)
    config = resolve_converter_config(settings)
    ensure_temp_root(config)
    logger.info(
        "x2t dir=%s fonts dir=%s temp root=%s timeout=%ss",
        config.converter_dir,
        config.fonts_dir,
        config.temp_root,
        config.timeout_sec,
    )
    reaper = WorkspaceReaper()
    app.state.pipeline = ConversionPipelineService(
        config,
        GCSService(project=settings.GCP_PROJECT, chunk_size=config.download_chunk_size),
        reaper=reaper,
    )
    try:
        yield
    finally:
        # Shutdown
        if reaper.pending:
            logger.info("Waiting for %d workspace cleanups", reaper.pending)
        await reaper.drain()
        app.state.pipeline = None


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Routers
app.include_router(health_router, prefix=settings.API_PREFIX)
app.include_router(convert_router, prefix=settings.API_PREFIX)


@app.get("/", tags=["root"])
async def root() -> dict:
    """Simple root endpoint."""
    return {"name": app.title, "version": app.version}
