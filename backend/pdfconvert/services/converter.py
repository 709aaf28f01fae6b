"""x2t converter invocation.

Builds the TaskQueueDataConvert job descriptor consumed by x2t, writes it to
disk, and runs the converter as a child process.

Note: x2t ships its own shared libraries next to the binary and does not
always find them on its own, so its directory is prepended to the dynamic
library search path of the child.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from xml.sax.saxutils import escape

from ..exceptions import ConversionError, ErrorKind

logger = logging.getLogger(__name__)

X2T_BIN = "x2t.exe" if os.name == "nt" else "x2t"

# PDF target in x2t's AVS_OFFICESTUDIO_FILE_* numbering
FORMAT_TO_PDF = 513

if os.name == "nt":
    LIBRARY_PATH_VAR = "PATH"
elif sys.platform == "darwin":
    LIBRARY_PATH_VAR = "DYLD_LIBRARY_PATH"
else:
    LIBRARY_PATH_VAR = "LD_LIBRARY_PATH"

_JOB_TEMPLATE = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '<TaskQueueDataConvert xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"\n'
    '                      xmlns:xsd="http://www.w3.org/2001/XMLSchema">\n'
    "  <m_sFileFrom>{file_from}</m_sFileFrom>\n"
    "  <m_sFileTo>{file_to}</m_sFileTo>\n"
    "  <m_sFontDir>{font_dir}</m_sFontDir>\n"
    "  <m_nFormatTo>{format_to}</m_nFormatTo>\n"
    "</TaskQueueDataConvert>\n"
)


def build_job_descriptor(input_path: Path, output_path: Path, fonts_dir: Path) -> bytes:
    """Render the x2t job descriptor as UTF-8 bytes."""
    return _JOB_TEMPLATE.format(
        file_from=escape(str(input_path)),
        file_to=escape(str(output_path)),
        font_dir=escape(str(fonts_dir)),
        format_to=FORMAT_TO_PDF,
    ).encode("utf-8")


def library_search_path(converter_dir: Path, inherited: str | None = None) -> str:
    """Return the library search path with converter_dir in front."""
    if inherited is None:
        inherited = os.environ.get(LIBRARY_PATH_VAR, "")
    return os.pathsep.join(p for p in (str(converter_dir), inherited) if p)


@dataclass
class ConverterResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    @property
    def exit_code(self) -> int | None:
        """The process exit code, or None when the process was killed by a signal."""
        return self.returncode if self.returncode >= 0 else None

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class X2tService:
    """Writes job descriptors and runs the x2t binary from converter_dir."""

    def __init__(self, converter_dir: Path, *, timeout_sec: int = 0) -> None:
        self.converter_dir = Path(converter_dir)
        self.timeout_sec = timeout_sec

    @property
    def binary(self) -> Path:
        return self.converter_dir / X2T_BIN

    async def write_config(self, config_path: Path, config_bytes: bytes) -> None:
        try:
            await asyncio.to_thread(Path(config_path).write_bytes, config_bytes)
        except OSError as exc:
            logger.error("Failed to write config file %s: %s", config_path, exc)
            raise ConversionError(ErrorKind.WRITE_CONFIG_FILE) from exc

    async def run(self, config_path: Path) -> ConverterResult:
        """Run x2t against config_path and wait for it to exit.

        A non-zero exit status is returned, not raised; callers classify it.
        Raises ConversionError when the process cannot be started or exceeds
        the configured timeout.
        """
        env = {**os.environ, LIBRARY_PATH_VAR: library_search_path(self.converter_dir)}

        try:
            proc = await asyncio.create_subprocess_exec(
                str(self.binary),
                str(config_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as exc:
            logger.error("Failed to run x2t at %s: %s", self.binary, exc)
            raise ConversionError(ErrorKind.RUN_X2T) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_sec or None)
        except asyncio.TimeoutError:
            logger.error("x2t (pid %s) exceeded %ss, killing", proc.pid, self.timeout_sec)
            raise ConversionError(ErrorKind.X2T_TIMEOUT)
        finally:
            # Timeout or cancellation: never leave x2t running on the workspace
            if proc.returncode is None:
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        return ConverterResult(returncode=proc.returncode, stdout=stdout or b"", stderr=stderr or b"")
