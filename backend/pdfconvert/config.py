"""Application settings and configuration helpers."""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv, find_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


class Settings:
    """Runtime configuration loaded from environment variables.

    Defaults match the stock ONLYOFFICE Document Server layout. Deployments
    that install x2t elsewhere should set X2T_PATH and X2T_FONTS_PATH.
    """

    APP_NAME: str = "Document to PDF Conversion API"
    API_PREFIX: str

    DEFAULT_X2T_PATH: str = "/var/www/onlyoffice/documentserver/server/FileConverter/bin"
    DEFAULT_FONTS_PATH: str = "/var/www/onlyoffice/documentserver/fonts"

    # Converter
    X2T_PATH: Optional[str]
    X2T_FONTS_PATH: Optional[str]
    CONVERTER_TIMEOUT_SEC: int
    INTEGRITY_CHECK_BYTES: int

    # Workspace
    TEMP_ROOT: str

    # GCP
    GCP_PROJECT: str
    DOWNLOAD_CHUNK_SIZE: int

    LOG_LEVEL: str

    def __init__(self) -> None:
        # Load .env once (supports parent directories)
        load_dotenv(find_dotenv(), override=False)
        self.API_PREFIX = os.getenv("API_PREFIX", "/api")

        self.X2T_PATH = os.getenv("X2T_PATH") or None
        self.X2T_FONTS_PATH = os.getenv("X2T_FONTS_PATH") or None
        # 0 disables the limit
        self.CONVERTER_TIMEOUT_SEC = _env_int("CONVERTER_TIMEOUT_SEC", 300)
        self.INTEGRITY_CHECK_BYTES = _env_int("INTEGRITY_CHECK_BYTES", 32 * 1024)

        self.TEMP_ROOT = os.getenv(
            "TEMP_ROOT", os.path.join(tempfile.gettempdir(), "onlyoffice-convert-server")
        )

        self.GCP_PROJECT = os.getenv("GCP_PROJECT", os.getenv("GOOGLE_CLOUD_PROJECT", ""))
        self.DOWNLOAD_CHUNK_SIZE = _env_int("DOWNLOAD_CHUNK_SIZE", 1024 * 1024)

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


@dataclass(frozen=True)
class ConverterConfig:
    """Resolved, absolute paths and limits handed to the pipeline at startup."""

    converter_dir: Path
    fonts_dir: Path
    temp_root: Path
    timeout_sec: int = 300
    integrity_check_bytes: int = 32 * 1024
    download_chunk_size: int = 1024 * 1024


def resolve_converter_config(settings: Settings) -> ConverterConfig:
    """Resolve the converter install and font directories.

    Environment variables win; otherwise the default install directory is
    used when it exists. Raises ConfigurationError when no converter
    directory can be found or a path cannot be made absolute.
    """
    converter_dir: Optional[Path] = None
    if settings.X2T_PATH:
        converter_dir = Path(settings.X2T_PATH)
    elif Path(settings.DEFAULT_X2T_PATH).is_dir():
        converter_dir = Path(settings.DEFAULT_X2T_PATH)

    if converter_dir is None:
        raise ConfigurationError("no x2t install path provided, set X2T_PATH")

    fonts_dir = Path(settings.X2T_FONTS_PATH or settings.DEFAULT_FONTS_PATH)

    if settings.CONVERTER_TIMEOUT_SEC < 0:
        raise ConfigurationError("CONVERTER_TIMEOUT_SEC must be >= 0")
    if settings.INTEGRITY_CHECK_BYTES <= 0:
        raise ConfigurationError("INTEGRITY_CHECK_BYTES must be > 0")
    if settings.DOWNLOAD_CHUNK_SIZE <= 0:
        raise ConfigurationError("DOWNLOAD_CHUNK_SIZE must be > 0")

    try:
        return ConverterConfig(
            converter_dir=converter_dir.absolute(),
            fonts_dir=fonts_dir.absolute(),
            temp_root=Path(settings.TEMP_ROOT).absolute(),
            timeout_sec=settings.CONVERTER_TIMEOUT_SEC,
            integrity_check_bytes=settings.INTEGRITY_CHECK_BYTES,
            download_chunk_size=settings.DOWNLOAD_CHUNK_SIZE,
        )
    except OSError as exc:
        raise ConfigurationError(f"failed to resolve converter paths: {exc}") from exc


def ensure_temp_root(config: ConverterConfig) -> None:
    """Create the shared workspace root if it does not exist yet."""
    try:
        config.temp_root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("failed to create temporary directory %s: %s", config.temp_root, exc)
        raise ConfigurationError(f"failed to create temporary directory {config.temp_root}") from exc
