"""ASGI request wrapper."""

from __future__ import annotations

import json
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs

from python_multipart.multipart import MultipartParser, parse_options_header

from signpost.cookies import parse_cookies

if TYPE_CHECKING:
    from signpost._types import Receive, Scope

FORM_URLENCODED = "application/x-www-form-urlencoded"
FORM_MULTIPART = "multipart/form-data"


@dataclass(frozen=True, slots=True)
class UploadInfo:
    """A file received in a multipart form, spooled to a temporary path."""

    field: str
    name: str
    tmp_path: Path
    size: int
    content_type: str


class Request:
    """Thin wrapper around an ASGI *scope* and *receive* callable.

    ``load()`` reads and parses the body once; after that the form,
    upload and body accessors are plain synchronous lookups so sync
    handlers running in a worker thread can use them.
    """

    __slots__ = ("_body", "_cookies", "_form", "_loaded", "_receive", "_scope", "_upload_dir", "_uploads")

    def __init__(self, scope: Scope, receive: Receive) -> None:
        self._scope = scope
        self._receive = receive
        self._body: bytes | None = None
        self._cookies: dict[str, str] | None = None
        self._form: dict[str, list[str]] = {}
        self._uploads: dict[str, UploadInfo] = {}
        self._upload_dir: Path | None = None
        self._loaded = False

    @property
    def method(self) -> str:
        return self._scope["method"].upper()

    @property
    def path(self) -> str:
        return self._scope["path"]

    @property
    def query_string(self) -> bytes:
        return self._scope.get("query_string", b"")

    @property
    def query_params(self) -> dict[str, list[str]]:
        return parse_qs(self.query_string.decode("latin-1"), keep_blank_values=True)

    def query(self, name: str, default: str | None = None) -> str | None:
        """Last value of query parameter *name*."""
        values = self.query_params.get(name)
        return values[-1] if values else default

    @property
    def headers(self) -> dict[str, str]:
        """Headers as a lowercase-keyed dict (last value wins for dupes)."""
        return {k.decode("latin-1").lower(): v.decode("latin-1") for k, v in self._scope.get("headers", [])}

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    @property
    def content_type(self) -> str:
        return self.header("content-type", "") or ""

    @property
    def cookies(self) -> dict[str, str]:
        if self._cookies is None:
            self._cookies = parse_cookies(self.header("cookie", "") or "")
        return self._cookies

    async def body(self) -> bytes:
        """Read and cache the full request body."""
        if self._body is not None:
            return self._body
        chunks: list[bytes] = []
        while True:
            message = await self._receive()
            chunk = message.get("body", b"")
            if chunk:
                chunks.append(chunk)
            if not message.get("more_body", False):
                break
        self._body = b"".join(chunks)
        return self._body

    async def json(self) -> Any:
        """Parse the request body as JSON."""
        return json.loads(await self.body())

    async def load(self) -> None:
        """Read the body and parse it when it is a form submission.

        Raises ``ValueError`` for malformed multipart bodies.
        """
        if self._loaded:
            return
        self._loaded = True
        body = await self.body()
        mimetype = self.content_type.split(";")[0].strip().lower()
        if mimetype == FORM_URLENCODED:
            self._form = parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True)
        elif mimetype == FORM_MULTIPART:
            self._parse_multipart(body)

    async def form(self) -> dict[str, list[str]]:
        await self.load()
        return self._form

    def form_value(self, name: str, default: str | None = None) -> str | None:
        """Last submitted value of form field *name* (after ``load()``)."""
        values = self._form.get(name)
        return values[-1] if values else default

    @property
    def uploads(self) -> dict[str, UploadInfo]:
        return self._uploads

    def parsed_body(self) -> dict[str, Any]:
        """Body parameters for the current content type (after ``load()``).

        JSON bodies decode to their object, form bodies to last values per
        field, and anything else is read as url-encoded text.
        """
        raw = self._body or b""
        mimetype = self.content_type.split(";")[0].strip().lower()
        if mimetype == "application/json" or mimetype.endswith("+json"):
            data = json.loads(raw) if raw else {}
            return data if isinstance(data, dict) else {"": data}
        if mimetype in (FORM_URLENCODED, FORM_MULTIPART):
            return {k: v[-1] for k, v in self._form.items()}
        parsed = parse_qs(raw.decode("utf-8", errors="replace"), keep_blank_values=True)
        return {k: v[-1] for k, v in parsed.items()}

    def cleanup(self) -> None:
        """Remove spooled upload files."""
        if self._upload_dir is not None:
            shutil.rmtree(self._upload_dir, ignore_errors=True)
            self._upload_dir = None

    def _parse_multipart(self, body: bytes) -> None:
        _, options = parse_options_header(self.content_type.encode("latin-1"))
        boundary = options.get(b"boundary")
        if boundary is None:
            msg = "Multipart form data missing boundary parameter"
            raise ValueError(msg)

        part: dict[str, Any] = {}
        header_field = bytearray()
        header_value = bytearray()

        def on_part_begin() -> None:
            part.clear()
            part.update(headers={}, data=bytearray())

        def on_header_field(data: bytes, start: int, end: int) -> None:
            header_field.extend(data[start:end])

        def on_header_value(data: bytes, start: int, end: int) -> None:
            header_value.extend(data[start:end])

        def on_header_end() -> None:
            part["headers"][header_field.decode("latin-1").lower()] = header_value.decode("latin-1")
            header_field.clear()
            header_value.clear()

        def on_part_data(data: bytes, start: int, end: int) -> None:
            part["data"].extend(data[start:end])

        def on_part_end() -> None:
            disposition = part["headers"].get("content-disposition", "")
            _, params = parse_options_header(disposition.encode("latin-1"))
            name = params.get(b"name")
            if name is None:
                return
            field = name.decode("utf-8")
            filename = params.get(b"filename")
            if filename is None:
                value = part["data"].decode("utf-8", errors="replace")
                self._form.setdefault(field, []).append(value)
                return
            self._spool(field, filename.decode("utf-8"), part)

        parser = MultipartParser(
            boundary,
            {
                "on_part_begin": on_part_begin,
                "on_header_field": on_header_field,
                "on_header_value": on_header_value,
                "on_header_end": on_header_end,
                "on_part_data": on_part_data,
                "on_part_end": on_part_end,
            },
        )
        parser.write(body)
        parser.finalize()

    def _spool(self, field: str, filename: str, part: dict[str, Any]) -> None:
        if self._upload_dir is None:
            self._upload_dir = Path(tempfile.mkdtemp(prefix="signpost-"))
        content = bytes(part["data"])
        # an empty filename means the file input was left blank
        if not filename and not content:
            return
        tmp_path = self._upload_dir / f"upload-{len(self._uploads)}"
        tmp_path.write_bytes(content)
        self._uploads[field] = UploadInfo(
            field=field,
            name=Path(filename).name,
            tmp_path=tmp_path,
            size=len(content),
            content_type=part["headers"].get("content-type", "application/octet-stream"),
        )
