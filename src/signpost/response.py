"""Response types sent back through the ASGI ``send`` callable."""

from __future__ import annotations

import asyncio
import mimetypes
import os
import re
import time
from email.utils import formatdate
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from pydantic import BaseModel
from pydantic_core import to_json

from signpost.cookies import SetCookie

if TYPE_CHECKING:
    from signpost._types import Message, Send

CHUNK_SIZE = 64 * 1024

# JavaScript function names, optionally dotted (`jQuery.cb`).
JSONP_CALLBACK = re.compile(r"[A-Za-z_$][A-Za-z0-9_$.]*")


class Response:
    """A complete, in-memory HTTP response."""

    media_type = "text/html; charset=utf-8"

    def __init__(
        self,
        body: bytes | str = b"",
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        media_type: str | None = None,
    ) -> None:
        self.body = body.encode("utf-8") if isinstance(body, str) else body
        self.status_code = status_code
        self.headers: list[tuple[str, str]] = list((headers or {}).items())
        if media_type is not None:
            self.media_type = media_type
        self.cookies: list[SetCookie] = []
        self._start: Message | None = None

    def set_cookie(self, cookie: SetCookie) -> None:
        self.cookies.append(cookie)

    def header(self, name: str) -> str | None:
        """Last value set for header *name* (case-insensitive)."""
        name = name.lower()
        found = None
        for key, value in self.headers:
            if key.lower() == name:
                found = value
        return found

    def content_length(self) -> int:
        return len(self.body)

    def raw_headers(self) -> list[tuple[bytes, bytes]]:
        names = {key.lower() for key, _ in self.headers}
        headers = list(self.headers)
        if "content-type" not in names and self.media_type:
            headers.append(("content-type", self.media_type))
        if "content-length" not in names:
            headers.append(("content-length", str(self.content_length())))
        headers.extend(("set-cookie", cookie.to_header_value()) for cookie in self.cookies)
        return [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers]

    def start_message(self) -> Message:
        """The ``http.response.start`` message, built and encoded once.

        Raises :class:`UnicodeEncodeError` for header values outside latin-1.
        """
        if self._start is None:
            self._start = {"type": "http.response.start", "status": self.status_code, "headers": self.raw_headers()}
        return self._start

    async def send(self, send: Send) -> None:
        await send(self.start_message())
        await send({"type": "http.response.body", "body": self.body})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code})"


class PlainTextResponse(Response):
    media_type = "text/plain; charset=utf-8"


class JSONResponse(Response):
    """JSON body from dicts, lists or pydantic models.

    With *callback* the payload is wrapped as JSONP, ``callback(payload)``.
    The callback must be a plain, optionally dotted, function name; anything
    else raises :class:`ValueError`.
    """

    media_type = "application/json"

    def __init__(
        self,
        content: Any,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        callback: str | None = None,
    ) -> None:
        payload = to_json(content.model_dump(mode="json") if isinstance(content, BaseModel) else content)
        media_type = None
        if callback:
            if not is_jsonp_callback(callback):
                raise ValueError(f"Invalid JSONP callback name: {callback!r}")
            payload = callback.encode("utf-8") + b"(" + payload + b")"
            media_type = "application/javascript"
        super().__init__(payload, status_code=status_code, headers=headers, media_type=media_type)


class RedirectResponse(Response):
    """Redirect to *location*; non-ASCII characters are percent-encoded."""

    def __init__(self, location: str, status_code: int = 302) -> None:
        location = quote(location, safe=":/?#[]@!$&'()*+,;=%~")
        super().__init__(b"", status_code=status_code, headers={"location": location})


class FileResponse(Response):
    """Stream a file from disk as an attachment.

    *cache_seconds* sets ``Cache-Control: max-age`` and ``Expires``; zero
    disables caching.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        download_name: str | None = None,
        cache_seconds: int = 0,
        status_code: int = 200,
    ) -> None:
        self.path = Path(path)
        stat = self.path.stat()
        self.size = stat.st_size
        guessed, _ = mimetypes.guess_type(download_name or self.path.name)
        super().__init__(b"", status_code=status_code, media_type=guessed or "application/octet-stream")

        name = download_name or self.path.name
        self.headers.append(("content-disposition", content_disposition(name)))
        self.headers.append(("last-modified", formatdate(stat.st_mtime, usegmt=True)))
        if cache_seconds > 0:
            self.headers.append(("cache-control", f"public, max-age={cache_seconds}"))
            self.headers.append(("expires", formatdate(time.time() + cache_seconds, usegmt=True)))
        else:
            self.headers.append(("cache-control", "no-cache"))

    def content_length(self) -> int:
        return self.size

    async def send(self, send: Send) -> None:
        await send(self.start_message())
        with self.path.open("rb") as fh:
            while True:
                chunk = await asyncio.to_thread(fh.read, CHUNK_SIZE)
                more = len(chunk) == CHUNK_SIZE
                await send({"type": "http.response.body", "body": chunk, "more_body": more})
                if not more:
                    break


def is_jsonp_callback(name: str) -> bool:
    return len(name) <= 128 and JSONP_CALLBACK.fullmatch(name) is not None


def content_disposition(filename: str) -> str:
    """``attachment`` header value; non-ASCII names also get ``filename*``."""
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace("\\", "").replace('"', "")
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback or 'download'}\"; filename*=UTF-8''{quote(filename, safe='')}"
