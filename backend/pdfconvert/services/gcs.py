"""Google Cloud Storage helper service for streamed transfers."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

from ..exceptions import ConversionError, ErrorKind

logger = logging.getLogger(__name__)


class GCSService:
    """Wrapper around google-cloud-storage for streamed download/upload.

    Methods are blocking; async callers should run them in a worker thread.
    A single attempt is made for every operation.
    """

    def __init__(
        self,
        client: Optional[storage.Client] = None,
        *,
        project: str | None = None,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        self._client = client or storage.Client(project=project or None)
        self.chunk_size = chunk_size

    def download_to_path(self, bucket_name: str, key: str, dest_path: Path) -> None:
        """Stream gs://bucket_name/key into dest_path chunk by chunk.

        A partially written file may remain on failure.
        """
        blob = self._client.bucket(bucket_name).blob(key)

        try:
            blob.reload()
        except NotFound as exc:
            logger.error("Source object gs://%s/%s not found: %s", bucket_name, key, exc)
            raise ConversionError(ErrorKind.NO_SUCH_KEY) from exc
        except GoogleAPIError as exc:
            logger.error("Error fetching source object gs://%s/%s: %s", bucket_name, key, exc)
            raise ConversionError(ErrorKind.GET_OBJECT, str(exc)) from exc

        try:
            reader = blob.open("rb", chunk_size=self.chunk_size)
        except Exception as exc:  # noqa: BLE001 any client error is a retrieval failure
            logger.error("Error opening source object gs://%s/%s: %s", bucket_name, key, exc)
            raise ConversionError(ErrorKind.GET_OBJECT, str(exc)) from exc

        try:
            try:
                out = open(dest_path, "wb")
            except OSError as exc:
                logger.error("Failed to create source file %s: %s", dest_path, exc)
                raise ConversionError(ErrorKind.GET_OBJECT, str(exc)) from exc

            with out:
                while True:
                    try:
                        chunk = reader.read(self.chunk_size)
                    except Exception as exc:  # noqa: BLE001 transport errors surface here
                        logger.error("Failed to read object chunk: %s", exc)
                        raise ConversionError(ErrorKind.READ_OBJECT_CHUNK) from exc
                    if not chunk:
                        break
                    try:
                        out.write(chunk)
                    except OSError as exc:
                        logger.error("Failed to write object chunk: %s", exc)
                        raise ConversionError(ErrorKind.WRITE_OBJECT_CHUNK) from exc

                try:
                    out.flush()
                except OSError as exc:
                    logger.error("Failed to flush object: %s", exc)
                    raise ConversionError(ErrorKind.FLUSH_OBJECT) from exc
        finally:
            try:
                reader.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close reader for gs://%s/%s: %s", bucket_name, key, exc)

    def upload_from_path(
        self,
        local_path: Path,
        bucket_name: str,
        key: str,
        content_type: str = "application/pdf",
    ) -> str:
        """Stream local_path to gs://bucket_name/key and return the object URI."""
        try:
            fh = open(local_path, "rb")
        except OSError as exc:
            logger.error("Failed to create output stream from %s: %s", local_path, exc)
            raise ConversionError(ErrorKind.CREATE_OUTPUT_STREAM) from exc

        blob = self._client.bucket(bucket_name).blob(key)
        with fh:
            try:
                blob.upload_from_file(fh, content_type=content_type)
            except Exception as exc:  # noqa: BLE001 any client error is an upload failure
                logger.error("Failed to upload output to gs://%s/%s: %s", bucket_name, key, exc)
                raise ConversionError(ErrorKind.UPLOAD_OUTPUT_STREAM) from exc
        return f"gs://{bucket_name}/{key}"
