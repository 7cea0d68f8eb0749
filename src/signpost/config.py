"""Application settings.

One frozen pydantic model holds everything the dispatcher reads at
request time. Unknown keys are rejected so typos fail at startup.
"""

from __future__ import annotations

import secrets
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # site root used by ``RequestContext.url``
    url: str = "/"
    # template directory and optional layout template name
    views: Path | None = None
    layout: str | None = None

    flash_cookie: str = "_F"
    session_cookie: str = "_S"
    # signs the flash and session cookies; set it explicitly when running
    # more than one worker process
    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(32), min_length=1)

    method_override_field: str = "_method"

    debug: bool = False
    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    @field_validator("flash_cookie", "session_cookie", "method_override_field")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "must not be blank"
            raise ValueError(msg)
        return value

    def site_url(self, path: str = "") -> str:
        return self.url.rstrip("/") + "/" + path.lstrip("/")
