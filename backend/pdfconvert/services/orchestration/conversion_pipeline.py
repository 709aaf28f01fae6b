from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ...config import ConverterConfig
from ...exceptions import ConversionError, ErrorKind
from ...models import ConversionRequest
from ..classifier import FailureClassifier
from ..converter import X2tService, build_job_descriptor
from ..gcs import GCSService
from ..workspace import TempWorkspace, WorkspaceReaper, allocate_workspace

logger = logging.getLogger(__name__)


class ConversionPipelineService:
    """Owns the execution of a single conversion request.

    write job descriptor -> download source -> run x2t -> classify or upload.
    Workspace cleanup is always scheduled on the reaper and not awaited.
    """

    def __init__(
        self,
        config: ConverterConfig,
        gcs: GCSService,
        *,
        reaper: Optional[WorkspaceReaper] = None,
        converter: Optional[X2tService] = None,
        classifier: Optional[FailureClassifier] = None,
    ) -> None:
        self.config = config
        self.gcs = gcs
        self.reaper = reaper or WorkspaceReaper()
        self.converter = converter or X2tService(config.converter_dir, timeout_sec=config.timeout_sec)
        self.classifier = classifier or FailureClassifier(config.integrity_check_bytes)

    async def convert(self, request: ConversionRequest) -> str:
        """Convert the source object and return the destination URI.

        Raises ConversionError describing the first stage that failed.
        """
        try:
            workspace = allocate_workspace(self.config.temp_root)
        except OSError as exc:
            logger.error("Failed to setup temporary paths under %s: %s", self.config.temp_root, exc)
            raise ConversionError(ErrorKind.CREATE_TEMP_PATHS) from exc

        try:
            return await self._run(workspace, request)
        except ConversionError as exc:
            logger.warning("[%s] conversion failed: %r", workspace.id, exc)
            raise
        finally:
            self.reaper.schedule(workspace)

    async def _run(self, workspace: TempWorkspace, request: ConversionRequest) -> str:
        job_id = workspace.id
        config_bytes = build_job_descriptor(workspace.input_path, workspace.output_path, self.config.fonts_dir)

        logger.debug("[%s] writing config file", job_id)
        await self.converter.write_config(workspace.config_path, config_bytes)

        logger.debug("[%s] streaming source file gs://%s/%s", job_id, request.source_bucket, request.source_key)
        await asyncio.to_thread(
            self.gcs.download_to_path, request.source_bucket, request.source_key, workspace.input_path
        )

        logger.debug("[%s] running x2t", job_id)
        result = await self.converter.run(workspace.config_path)
        logger.debug("[%s] x2t complete (returncode=%s)", job_id, result.returncode)

        if not result.succeeded:
            raise await self.classifier.classify(result, workspace.input_path, job_id=job_id)

        logger.debug("[%s] uploading output", job_id)
        dest_uri = await asyncio.to_thread(
            self.gcs.upload_from_path, workspace.output_path, request.dest_bucket, request.dest_key
        )
        logger.info(
            "[%s] converted gs://%s/%s -> %s", job_id, request.source_bucket, request.source_key, dest_uri
        )
        return dest_uri
