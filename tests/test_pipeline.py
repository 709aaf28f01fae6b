"""End-to-end pipeline tests: fake blob store -> fake x2t -> upload/classify -> cleanup."""

import os
from unittest.mock import AsyncMock, patch

import pytest

from pdfconvert.exceptions import ConversionError, ErrorKind
from pdfconvert.models import ConversionRequest

from conftest import (
    X2T_COPY,
    X2T_OUT_OF_RANGE,
    make_corrupted_docx_bytes,
    make_docx_bytes,
    make_encrypted_docx_bytes,
    x2t_exit,
)

pytestmark = pytest.mark.skipif(os.name == "nt", reason="fake x2t is a POSIX script")

REQUEST = ConversionRequest(
    source_bucket="bucket",
    source_key="key.docx",
    dest_bucket="out-bucket",
    dest_key="key.pdf",
)


def workspace_files(converter_config):
    return sorted(p.name for p in converter_config.temp_root.iterdir())


class TestSuccessfulConversion:
    async def test_uploads_converter_output(self, pipeline, storage_client, install_x2t, converter_config):
        docx = make_docx_bytes()
        storage_client.objects[("bucket", "key.docx")] = docx
        install_x2t(X2T_COPY)

        uri = await pipeline.convert(REQUEST)

        assert uri == "gs://out-bucket/key.pdf"
        assert storage_client.objects[("out-bucket", "key.pdf")] == b"%PDF-1.7\n" + docx

    async def test_workspace_removed_after_success(self, pipeline, storage_client, install_x2t, converter_config):
        storage_client.objects[("bucket", "key.docx")] = make_docx_bytes()
        install_x2t(X2T_COPY)

        await pipeline.convert(REQUEST)
        await pipeline.reaper.drain()

        assert workspace_files(converter_config) == []

    async def test_cleanup_is_not_awaited(self, pipeline, storage_client, install_x2t):
        storage_client.objects[("bucket", "key.docx")] = make_docx_bytes()
        install_x2t(X2T_COPY)

        await pipeline.convert(REQUEST)

        assert pipeline.reaper.pending == 1
        await pipeline.reaper.drain()


class TestFailures:
    async def test_missing_source_key(self, pipeline, storage_client, install_x2t, converter_config):
        install_x2t(X2T_COPY)

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        err = excinfo.value
        assert err.reason == "NO_SUCH_KEY"
        assert err.x2t_code is None
        assert err.message == "key not found in source bucket"
        # x2t never ran and nothing was written
        assert not (converter_config.converter_dir / "env.txt").exists()
        assert ("out-bucket", "key.pdf") not in storage_client.objects

        await pipeline.reaper.drain()
        assert workspace_files(converter_config) == []

    async def test_encrypted_crash_signature(self, pipeline, storage_client, install_x2t, converter_config):
        storage_client.objects[("bucket", "key.docx")] = make_encrypted_docx_bytes()
        install_x2t(X2T_OUT_OF_RANGE)

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        err = excinfo.value
        assert err.to_response().model_dump() == {
            "reason": "FILE_LIKELY_ENCRYPTED",
            "x2t_code": 134,
            "message": "file is encrypted",
        }
        assert ("out-bucket", "key.pdf") not in storage_client.objects

        await pipeline.reaper.drain()
        assert workspace_files(converter_config) == []

    async def test_crash_signature_overrides_corrupted_bytes(self, pipeline, storage_client, install_x2t):
        storage_client.objects[("bucket", "key.docx")] = make_corrupted_docx_bytes()
        install_x2t(X2T_OUT_OF_RANGE)

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        assert excinfo.value.kind is ErrorKind.FILE_LIKELY_ENCRYPTED

    async def test_corrupted_input(self, pipeline, storage_client, install_x2t):
        storage_client.objects[("bucket", "key.docx")] = make_corrupted_docx_bytes()
        install_x2t(x2t_exit(0x56))

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        assert excinfo.value.reason == "FILE_LIKELY_CORRUPTED"
        assert excinfo.value.x2t_code == 0x56

    async def test_known_exit_code(self, pipeline, storage_client, install_x2t):
        storage_client.objects[("bucket", "key.docx")] = make_docx_bytes()
        install_x2t(x2t_exit(0x5B))

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        assert excinfo.value.reason is None
        assert excinfo.value.message == "AVS_FILEUTILS_ERROR_CONVERT_PASSWORD"
        assert excinfo.value.x2t_code == 0x5B

    async def test_unknown_exit_code(self, pipeline, storage_client, install_x2t):
        storage_client.objects[("bucket", "key.docx")] = make_docx_bytes()
        install_x2t(x2t_exit(42))

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        assert excinfo.value.message == "unknown error occurred"
        assert excinfo.value.x2t_code == 42

    async def test_success_without_output_file(self, pipeline, storage_client, install_x2t, converter_config):
        storage_client.objects[("bucket", "key.docx")] = make_docx_bytes()
        install_x2t(x2t_exit(0))

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        assert excinfo.value.reason == "CREATE_OUTPUT_STREAM"
        await pipeline.reaper.drain()
        assert workspace_files(converter_config) == []

    async def test_missing_temp_root(self, pipeline, converter_config):
        converter_config.temp_root.rmdir()

        with pytest.raises(ConversionError) as excinfo:
            await pipeline.convert(REQUEST)

        assert excinfo.value.kind is ErrorKind.CREATE_TEMP_PATHS
        assert pipeline.reaper.pending == 0

    async def test_config_written_before_download(self, pipeline, storage_client, install_x2t):
        storage_client.objects[("bucket", "key.docx")] = make_docx_bytes()
        install_x2t(X2T_COPY)
        calls = []

        real_write = pipeline.converter.write_config
        real_download = pipeline.gcs.download_to_path

        async def record_write(path, data):
            calls.append("write_config")
            await real_write(path, data)

        def record_download(*args):
            assert calls == ["write_config"]
            calls.append("download")
            real_download(*args)

        with patch.object(pipeline.converter, "write_config", AsyncMock(side_effect=record_write)), \
                patch.object(pipeline.gcs, "download_to_path", side_effect=record_download):
            await pipeline.convert(REQUEST)

        assert calls == ["write_config", "download"]
        await pipeline.reaper.drain()
