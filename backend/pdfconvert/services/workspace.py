"""Per-request temporary workspace paths and their background cleanup."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TempWorkspace:
    id: str
    config_path: Path
    input_path: Path
    output_path: Path

    def paths(self) -> tuple[Path, Path, Path]:
        return (self.config_path, self.input_path, self.output_path)


def allocate_workspace(temp_root: Path) -> TempWorkspace:
    """Derive three unique absolute paths under temp_root.

    Files are not created here. Raises OSError if the root cannot be resolved
    (missing directory, permission denied).
    """
    random_id = uuid.uuid4().hex
    root = Path(temp_root).resolve(strict=True)
    return TempWorkspace(
        id=random_id,
        config_path=root / f"tmp_native_config_{random_id}.xml",
        input_path=root / f"tmp_native_input_{random_id}",
        output_path=root / f"tmp_native_output_{random_id}.pdf",
    )


async def release_workspace(workspace: TempWorkspace) -> int:
    """Delete every workspace path that exists; returns the number of failures.

    Each deletion is independent; failures are logged and never raised.
    """
    failures = 0
    for path in workspace.paths():
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as exc:
            failures += 1
            logger.error("[%s] failed to delete temporary file %s: %s", workspace.id, path, exc)
    return failures


class WorkspaceReaper:
    """Runs workspace cleanup as background tasks that may outlive the response.

    Strong references are kept until each task finishes so the event loop
    does not garbage-collect pending cleanups.
    """

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, workspace: TempWorkspace) -> asyncio.Task:
        task = asyncio.create_task(release_workspace(workspace), name=f"cleanup-{workspace.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for all scheduled cleanups (used on shutdown and in tests)."""
        if not self._tasks:
            return
        results = await asyncio.gather(*list(self._tasks), return_exceptions=True)
        for res in results:
            if isinstance(res, BaseException):
                logger.warning("Cleanup task error: %s", res)
