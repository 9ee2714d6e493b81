import mimetypes
import os
from typing import Optional, Tuple

DEFAULT_CONTENT_TYPE = "application/octet-stream"
TEXT_CONTENT_TYPE = "text/plain"

_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".tif", ".tiff", ".bmp", ".swf"}

# (offset, magic bytes, mime type); checked in order
_IMAGE_SIGNATURES = (
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (0, b"II*\x00", "image/tiff"),
    (0, b"MM\x00*", "image/tiff"),
    (0, b"BM", "image/bmp"),
    (0, b"FWS", "application/x-shockwave-flash"),
    (0, b"CWS", "application/x-shockwave-flash"),
)
# Signatures long enough to trust regardless of the file name
_CONTENT_SIGNATURES = (
    (0, b"\xff\xd8\xff", "image/jpeg"),
    (0, b"\x89PNG\r\n\x1a\n", "image/png"),
    (0, b"GIF87a", "image/gif"),
    (0, b"GIF89a", "image/gif"),
    (8, b"WEBP", "image/webp"),
    (0, b"%PDF-", "application/pdf"),
    (0, b"PK\x03\x04", "application/zip"),
    (0, b"\x1f\x8b\x08", "application/gzip"),
    (0, b"<?xml", "application/xml"),
)


def _match_signature(data: bytes, signatures) -> Optional[str]:
    for offset, magic, mime in signatures:
        if data[offset:offset + len(magic)] == magic:
            return mime
    return None


def _looks_like_text(data: bytes) -> bool:
    if b"\x00" in data[:1024]:
        return False
    try:
        data.decode("utf-8")
        return True
    except UnicodeDecodeError:
        return False


def guess_content_type(path: str, data: bytes) -> str:
    """Best-effort MIME type: image signatures, content signatures, extension, text check."""
    extension = os.path.splitext(path)[1].lower()
    if extension in _IMAGE_EXTENSIONS:
        mime = _match_signature(data, _IMAGE_SIGNATURES)
        if mime:
            return mime
    mime = _match_signature(data, _CONTENT_SIGNATURES) or mimetypes.guess_type(path)[0]
    if mime:
        return mime
    if data and _looks_like_text(data):
        return TEXT_CONTENT_TYPE
    return DEFAULT_CONTENT_TYPE


def sniff(path: str) -> Tuple[Optional[bytes], Optional[str]]:
    """Read ``path`` and guess its content type; ``(None, None)`` if it cannot be read."""
    if not os.path.isfile(path):
        return None, None
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError:
        return None, None
    return data, guess_content_type(path, data)
