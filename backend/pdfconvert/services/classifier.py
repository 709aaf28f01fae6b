"""Turns a failed x2t run into a single ConversionError.

Signals are ranked from most to least specific:
1) an out-of-range crash on stderr (x2t does this on password protected input),
2) the byte heuristic over the start of the input file,
3) the x2t exit code table.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

from ..exceptions import ConversionError, ErrorKind
from .converter import ConverterResult
from .integrity import FileCondition, classify_file_bytes

logger = logging.getLogger(__name__)

OUT_OF_RANGE_SIGNATURE = "std::out_of_range"

X2T_ERROR_CODES: Dict[int, str] = {
    0x0001: "AVS_FILEUTILS_ERROR_UNKNOWN",
    0x0050: "AVS_FILEUTILS_ERROR_CONVERT",
    0x0051: "AVS_FILEUTILS_ERROR_CONVERT_DOWNLOAD",
    0x0052: "AVS_FILEUTILS_ERROR_CONVERT_UNKNOWN_FORMAT",
    0x0053: "AVS_FILEUTILS_ERROR_CONVERT_TIMEOUT",
    0x0054: "AVS_FILEUTILS_ERROR_CONVERT_READ_FILE",
    0x0055: "AVS_FILEUTILS_ERROR_CONVERT_DRM_UNSUPPORTED",
    0x0056: "AVS_FILEUTILS_ERROR_CONVERT_CORRUPTED",
    0x0057: "AVS_FILEUTILS_ERROR_CONVERT_LIBREOFFICE",
    0x0058: "AVS_FILEUTILS_ERROR_CONVERT_PARAMS",
    0x0059: "AVS_FILEUTILS_ERROR_CONVERT_NEED_PARAMS",
    0x005A: "AVS_FILEUTILS_ERROR_CONVERT_DRM",
    0x005B: "AVS_FILEUTILS_ERROR_CONVERT_PASSWORD",
    0x005C: "AVS_FILEUTILS_ERROR_CONVERT_ICU",
    0x005D: "AVS_FILEUTILS_ERROR_CONVERT_LIMITS",
    0x005E: "AVS_FILEUTILS_ERROR_CONVERT_ROWLIMITS",
    0x005F: "AVS_FILEUTILS_ERROR_CONVERT_DETECT",
    0x0060: "AVS_FILEUTILS_ERROR_CONVERT_CELLLIMITS",
}


def describe_exit_code(code: Optional[int]) -> Optional[str]:
    """Return the x2t error name for an exit code, or None if unknown."""
    if code is None:
        return None
    return X2T_ERROR_CODES.get(code)


def converter_code_error(code: Optional[int]) -> ConversionError:
    name = describe_exit_code(code)
    if name is None:
        return ConversionError(ErrorKind.UNKNOWN_CONVERTER_CODE, x2t_code=code)
    return ConversionError(ErrorKind.KNOWN_CONVERTER_CODE, name, x2t_code=code)


def read_file_prefix(path: Path, limit: int) -> bytes:
    """Read at most ``limit`` bytes from the start of path."""
    try:
        fh = open(path, "rb")
    except OSError as exc:
        logger.error("Failed to open input file for integrity check: %s", exc)
        raise ConversionError(ErrorKind.OPEN_FILE_INTEGRITY) from exc

    buf = bytearray()
    with fh:
        while len(buf) < limit:
            try:
                chunk = fh.read(limit - len(buf))
            except OSError as exc:
                logger.error("Failed to read input file for integrity check: %s", exc)
                raise ConversionError(ErrorKind.READ_FILE_INTEGRITY) from exc
            if not chunk:
                break
            buf.extend(chunk)
    return bytes(buf)


class FailureClassifier:
    def __init__(self, integrity_check_bytes: int = 32 * 1024) -> None:
        self.integrity_check_bytes = integrity_check_bytes

    def decide(self, exit_code: Optional[int], stderr: str, condition: FileCondition) -> ConversionError:
        """Pure decision step, first match wins."""
        if OUT_OF_RANGE_SIGNATURE in stderr:
            return ConversionError(ErrorKind.FILE_LIKELY_ENCRYPTED, x2t_code=exit_code)
        if condition is FileCondition.LIKELY_CORRUPTED:
            return ConversionError(ErrorKind.FILE_LIKELY_CORRUPTED, x2t_code=exit_code)
        if condition is FileCondition.LIKELY_ENCRYPTED:
            return ConversionError(ErrorKind.FILE_LIKELY_ENCRYPTED, x2t_code=exit_code)
        return converter_code_error(exit_code)

    async def classify(self, result: ConverterResult, input_path: Path, *, job_id: str = "-") -> ConversionError:
        """Classify a failed run; only valid for a non-zero exit status.

        Raises ConversionError itself when the input file cannot be re-read.
        """
        if result.succeeded:
            raise ValueError("classify() called for a successful x2t run")

        logger.debug("[%s] reading file integrity", job_id)
        prefix = await asyncio.to_thread(read_file_prefix, input_path, self.integrity_check_bytes)
        condition = classify_file_bytes(prefix)
        stderr = result.stderr_text

        logger.error(
            "[%s] error processing file (stderr = %s, exit code = %s, file_condition = %s)",
            job_id,
            stderr.strip(),
            result.exit_code if result.exit_code is not None else f"signal {-result.returncode}",
            condition.value,
        )
        error = self.decide(result.exit_code, stderr, condition)
        logger.info("[%s] classified x2t failure as %s (%s)", job_id, error.kind.name, error.message)
        return error
