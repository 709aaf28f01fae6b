"""Best-effort classification of raw document bytes.

Only consulted after x2t has already failed, to tell callers whether the input
itself looks broken or password protected. Works on a bounded prefix of the
file, so the verdicts are hints rather than proofs.

PDF encryption is announced by an /Encrypt entry in the trailer, which sits at
the end of the file. It is only seen when the trailer falls inside the prefix,
as in linearized or small PDFs; a larger non-linearized encrypted PDF reads as
HEALTHY.
"""
from __future__ import annotations

import struct
from enum import Enum

OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ZIP_LOCAL_HEADER = b"PK\x03\x04"
ZIP_EMPTY_ARCHIVE = b"PK\x05\x06"
PDF_MAGIC = b"%PDF-"

# Stream names written by Office when a document is saved with a password
_OLE_ENCRYPTION_MARKERS = (
    "EncryptedPackage".encode("utf-16-le"),
    "EncryptionInfo".encode("utf-16-le"),
)

# stored, shrunk, imploded, deflate, deflate64, bzip2, lzma, zstd, xz, ppmd, aes
_ZIP_METHODS = {0, 1, 6, 8, 9, 12, 14, 93, 95, 98, 99}

_ZERO_RATIO_CORRUPT = 0.95


class FileCondition(Enum):
    UNKNOWN = "unknown"
    LIKELY_CORRUPTED = "likely_corrupted"
    LIKELY_ENCRYPTED = "likely_encrypted"
    HEALTHY = "healthy"


def classify_file_bytes(data: bytes) -> FileCondition:
    """Classify the leading bytes of a document."""
    if not data:
        return FileCondition.LIKELY_CORRUPTED
    if data.count(0) / len(data) >= _ZERO_RATIO_CORRUPT:
        return FileCondition.LIKELY_CORRUPTED

    if data.startswith(OLE_MAGIC):
        # Encrypted OOXML is wrapped in an OLE container
        if any(marker in data for marker in _OLE_ENCRYPTION_MARKERS):
            return FileCondition.LIKELY_ENCRYPTED
        return FileCondition.HEALTHY

    if data.startswith(ZIP_LOCAL_HEADER):
        return FileCondition.HEALTHY if _zip_header_ok(data) else FileCondition.LIKELY_CORRUPTED
    if data.startswith(ZIP_EMPTY_ARCHIVE):
        # An archive with no entries cannot be a document
        return FileCondition.LIKELY_CORRUPTED
    if b"[Content_Types].xml" in data:
        # OOXML part names without a valid leading zip header
        return FileCondition.LIKELY_CORRUPTED

    if data.startswith(PDF_MAGIC):
        # Trailer must be inside the prefix (linearized or small files)
        if b"/Encrypt" in data:
            return FileCondition.LIKELY_ENCRYPTED
        return FileCondition.HEALTHY

    return FileCondition.UNKNOWN


def _zip_header_ok(data: bytes) -> bool:
    """Sanity check the first zip local file header."""
    if len(data) < 30:
        return False
    (
        _sig, _version, _flags, method, _mtime, _mdate, _crc,
        _csize, _usize, name_len, _extra_len,
    ) = struct.unpack("<4sHHHHHIIIHH", data[:30])
    if method not in _ZIP_METHODS:
        return False
    if name_len == 0 or name_len > 1024 or len(data) < 30 + name_len:
        return False
    try:
        data[30:30 + name_len].decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True
