"""Pydantic models for API requests and responses."""
from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ConversionRequest(BaseModel):
    """Names the source object to convert and where the PDF should be written."""

    model_config = ConfigDict(frozen=True)

    source_bucket: str = Field(..., min_length=1, description="Bucket the input source file is within")
    source_key: str = Field(..., min_length=1, description="Key within the source bucket for the source file")
    dest_bucket: str = Field(..., min_length=1, description="Bucket to store the output file")
    dest_key: str = Field(..., min_length=1, description="Key within dest_bucket for the output file")


class ErrorResponse(BaseModel):
    """Failure body returned with HTTP 500."""

    reason: Optional[str] = Field(None, description="Machine-readable failure token")
    x2t_code: Optional[int] = Field(None, description="Converter exit code, when the converter ran")
    message: str
