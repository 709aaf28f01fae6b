"""Shared test fixtures for the conversion service."""

import io
import stat
import sys
import zipfile

import pytest
from google.api_core.exceptions import NotFound

from pdfconvert.config import ConverterConfig
from pdfconvert.services.converter import X2T_BIN
from pdfconvert.services.gcs import GCSService
from pdfconvert.services.orchestration.conversion_pipeline import ConversionPipelineService


# Stand-in for x2t: parses the job descriptor, records the library path it
# was started with, then runs the mode-specific body.
X2T_PRELUDE = """#!{python}
import os, sys
import xml.etree.ElementTree as ET

here = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(here, "env.txt"), "w") as fh:
    fh.write(os.environ.get("LD_LIBRARY_PATH", ""))
root = ET.parse(sys.argv[1]).getroot()
src = root.findtext("m_sFileFrom")
dst = root.findtext("m_sFileTo")
"""

X2T_COPY = """
with open(src, "rb") as fh:
    data = fh.read()
with open(dst, "wb") as fh:
    fh.write(b"%PDF-1.7\\n" + data)
"""

X2T_OUT_OF_RANGE = """
sys.stderr.write("terminate called after throwing an instance of 'std::out_of_range'\\n")
sys.stderr.write("  what():  vector::_M_range_check\\n")
sys.exit(134)
"""

X2T_SLEEP = """
import time
time.sleep(30)
"""

X2T_PID_SLEEP = """
with open(os.path.join(here, "pid.txt"), "w") as fh:
    fh.write(str(os.getpid()))
import time
time.sleep(30)
"""

X2T_SIGKILL = """
import signal
os.kill(os.getpid(), signal.SIGKILL)
"""


def x2t_exit(code: int) -> str:
    return f"\nsys.exit({code})\n"


def make_docx_bytes() -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("[Content_Types].xml", '<?xml version="1.0"?><Types/>')
        zf.writestr("word/document.xml", "<w:document/>")
    return buf.getvalue()


def make_encrypted_docx_bytes() -> bytes:
    # OLE container holding the EncryptedPackage stream
    header = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 504
    directory = "EncryptionInfo".encode("utf-16-le") + b"\x00" * 50 + "EncryptedPackage".encode("utf-16-le")
    return header + directory + bytes(range(1, 256)) * 8


def make_corrupted_docx_bytes() -> bytes:
    # Zip signature followed by an impossible compression method
    return b"PK\x03\x04" + b"\x14\x00\x00\x00\x4d\x00" + b"\xff" * 200


class FakeBlob:
    def __init__(self, store: "FakeStorageClient", bucket: str, key: str) -> None:
        self._store = store
        self.bucket = bucket
        self.key = key

    def reload(self) -> None:
        if (self.bucket, self.key) not in self._store.objects:
            raise NotFound(f"No such object: {self.bucket}/{self.key}")

    def open(self, mode: str = "rb", chunk_size=None):
        return io.BytesIO(self._store.objects[(self.bucket, self.key)])

    def upload_from_file(self, fh, content_type=None) -> None:
        self._store.objects[(self.bucket, self.key)] = fh.read()
        self._store.content_types[(self.bucket, self.key)] = content_type


class FakeBucket:
    def __init__(self, store: "FakeStorageClient", name: str) -> None:
        self._store = store
        self.name = name

    def blob(self, key: str) -> FakeBlob:
        return FakeBlob(self._store, self.name, key)


class FakeStorageClient:
    """In-memory stand-in for google.cloud.storage.Client."""

    def __init__(self) -> None:
        self.objects = {}
        self.content_types = {}

    def bucket(self, name: str) -> FakeBucket:
        return FakeBucket(self, name)


@pytest.fixture
def converter_config(tmp_path):
    converter_dir = tmp_path / "x2t"
    fonts_dir = tmp_path / "fonts"
    temp_root = tmp_path / "work"
    for d in (converter_dir, fonts_dir, temp_root):
        d.mkdir()
    return ConverterConfig(
        converter_dir=converter_dir,
        fonts_dir=fonts_dir,
        temp_root=temp_root,
        timeout_sec=30,
    )


@pytest.fixture
def install_x2t(converter_config):
    """Write an executable fake x2t into the converter dir."""

    def _install(body: str):
        script = converter_config.converter_dir / X2T_BIN
        script.write_text(X2T_PRELUDE.format(python=sys.executable) + body)
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return script

    return _install


@pytest.fixture
def storage_client():
    return FakeStorageClient()


@pytest.fixture
async def pipeline(converter_config, storage_client):
    service = ConversionPipelineService(converter_config, GCSService(storage_client))
    yield service
    await service.reaper.drain()
