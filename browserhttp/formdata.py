import os
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Mapping, Optional, Tuple
from urllib.parse import quote, quote_plus, urlencode

from .filetype import sniff
from .logging import get_logger

SniffFunc = Callable[[str], Tuple[Optional[bytes], Optional[str]]]

logger = get_logger("formdata")


@dataclass
class FilePart:
    field_name: str
    file_name: str
    content_type: str
    data: bytes


def _coerce_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    return str(value).encode("utf-8")


def _coerce_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _encode_form_key(key: Any) -> str:
    # Keys are fully escaped, "~" included; values keep "~" literal
    return quote_plus(_coerce_str(key), safe="").replace("~", "%7E")


def encode_form(parameters: Mapping[str, Any]) -> str:
    """Form-encode a request body: ``key=quote(value)`` joined by ``&``."""
    return "&".join(
        f"{_encode_form_key(key)}={quote(_coerce_str(value), safe='')}"
        for key, value in parameters.items()
    )


def encode_query(parameters: Mapping[str, Any]) -> str:
    """Standard form encoding used for GET query strings."""
    return urlencode([(_coerce_str(key), _coerce_str(value)) for key, value in parameters.items()])


class MultipartEncoder:
    """
    Buffered multipart/form-data encoder.

    A field value starting with ``@`` names a local file to upload; files
    that cannot be read are left out of the body. ``raw`` bytes, when given,
    become the first part verbatim, without a Content-Disposition header.
    """

    def __init__(
        self,
        fields: Optional[Mapping[str, Any]] = None,
        *,
        boundary: str,
        raw: bytes = b"",
        sniff_file: SniffFunc = sniff,
    ) -> None:
        self.boundary = boundary
        self._boundary_line = f"--{self.boundary}\r\n".encode("ascii")
        self._closing_boundary = f"--{self.boundary}--\r\n".encode("ascii")
        self.fields = dict(fields or {})
        self.raw = _coerce_bytes(raw)
        self._sniff = sniff_file

    def iter_parts(self) -> Iterator[bytes]:
        if self.raw:
            yield self._boundary_line
            yield self.raw
            yield b"\r\n"

        for name, value in self.fields.items():
            value = _coerce_str(value)
            if value.startswith("@"):
                part = self._load_file(name, value[1:])
                if part is None:
                    continue
                yield self._boundary_line
                yield self._render_file_headers(part)
                yield part.data
                yield b"\r\n"
            else:
                yield self._boundary_line
                yield self._render_field_headers(name)
                yield value.encode("utf-8")
                yield b"\r\n"

        yield self._closing_boundary

    def encode(self) -> bytes:
        return b"".join(self.iter_parts())

    def _load_file(self, field_name: str, path: str) -> Optional[FilePart]:
        data, content_type = self._sniff(path)
        if data is None:
            logger.debug("Skipping upload field %r: cannot read %r", field_name, path)
            return None
        return FilePart(
            field_name=field_name,
            file_name=os.path.basename(path),
            content_type=content_type or "application/octet-stream",
            data=data,
        )

    def _render_field_headers(self, name: str) -> bytes:
        return (
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
        ).encode("utf-8")

    def _render_file_headers(self, part: FilePart) -> bytes:
        disposition = (
            f'Content-Disposition: form-data; name="{part.field_name}"; '
            f'filename="{part.file_name}"\r\n'
        )
        headers = (
            disposition
            + f"Content-Type: {part.content_type}\r\n"
            + "Content-Transfer-Encoding: binary\r\n\r\n"
        )
        return headers.encode("utf-8")


def build_body(spec, sniff_file: SniffFunc = sniff) -> bytes:
    """
    Build the request body for ``spec`` in one of three modes.

    Multipart when ``spec.multipart`` is set; raw bytes verbatim when a raw
    body is present; otherwise the form-encoded parameters.
    """
    if spec.multipart:
        encoder = MultipartEncoder(spec.parameters, boundary=spec.boundary, raw=spec.raw_body, sniff_file=sniff_file)
        return encoder.encode()
    if spec.raw_body:
        return _coerce_bytes(spec.raw_body)
    return encode_form(spec.parameters).encode("ascii")


__all__ = ["MultipartEncoder", "build_body", "encode_form", "encode_query"]
