from __future__ import annotations

"""Domain-specific exceptions for the conversion pipeline.

Routers should catch these and translate them to appropriate HTTP responses.
"""

from enum import Enum
from typing import Optional

from .models import ErrorResponse


class ErrorKind(Enum):
    """Every way a conversion request can fail.

    Each member carries the machine-readable ``reason`` token returned to
    callers (``None`` when only a converter code message applies) and the
    default human-readable message.
    """

    # Workspace / config
    CREATE_TEMP_PATHS = ("CREATE_TEMP_PATHS", "failed to setup temporary file paths")
    WRITE_CONFIG_FILE = ("WRITE_CONFIG_FILE", "failed to write config file")

    # Blob store
    NO_SUCH_KEY = ("NO_SUCH_KEY", "key not found in source bucket")
    GET_OBJECT = ("GET_OBJECT", "failed to get source object")
    READ_OBJECT_CHUNK = ("READ_OBJECT_CHUNK", "failed to read chunk")
    WRITE_OBJECT_CHUNK = ("WRITE_OBJECT_CHUNK", "failed to write chunk")
    FLUSH_OBJECT = ("FLUSH_OBJECT", "failed to flush object")
    CREATE_OUTPUT_STREAM = ("CREATE_OUTPUT_STREAM", "failed to create output stream")
    UPLOAD_OUTPUT_STREAM = ("UPLOAD_OUTPUT_STREAM", "failed to upload output stream")

    # Converter process
    RUN_X2T = ("RUN_X2T", "failed to run x2t")
    X2T_TIMEOUT = ("X2T_TIMEOUT", "x2t timed out")

    # Integrity check
    OPEN_FILE_INTEGRITY = ("OPEN_FILE_INTEGRITY", "failed to open input file for integrity check")
    READ_FILE_INTEGRITY = ("READ_FILE_INTEGRITY", "failed to read input file for integrity check")

    # Converter outcome classification
    FILE_LIKELY_ENCRYPTED = ("FILE_LIKELY_ENCRYPTED", "file is encrypted")
    FILE_LIKELY_CORRUPTED = ("FILE_LIKELY_CORRUPTED", "file is corrupted")
    KNOWN_CONVERTER_CODE = (None, "x2t reported an error")
    UNKNOWN_CONVERTER_CODE = (None, "unknown error occurred")

    def __init__(self, reason: Optional[str], default_message: str) -> None:
        self.reason = reason
        self.default_message = default_message


class ConversionError(Exception):
    """A conversion request failed at some pipeline stage (maps to HTTP 500)."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        *,
        x2t_code: int | None = None,
    ) -> None:
        self.kind = kind
        self.message = message or kind.default_message
        self.x2t_code = x2t_code
        super().__init__(self.message)

    @property
    def reason(self) -> Optional[str]:
        return self.kind.reason

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(reason=self.reason, x2t_code=self.x2t_code, message=self.message)

    def __repr__(self) -> str:
        return f"ConversionError({self.kind.name}, {self.message!r}, x2t_code={self.x2t_code})"


class ConfigurationError(Exception):
    """Converter installation or workspace settings could not be resolved at startup."""
