from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from signpost import App


class CookieJar:
    """Carries cookies between requests the way a browser would."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def update(self, response: httpx.Response) -> None:
        for header in response.headers.get_list("set-cookie"):
            pair, *attributes = header.split(";")
            name, _, value = pair.strip().partition("=")
            if any(attr.strip().lower() == "max-age=0" for attr in attributes):
                self.values.pop(name, None)
            else:
                self.values[name] = value

    @property
    def headers(self) -> dict[str, str]:
        if not self.values:
            return {}
        return {"cookie": "; ".join(f"{k}={v}" for k, v in self.values.items())}


def make_client(app: App) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    )


@pytest.fixture
def jar() -> CookieJar:
    return CookieJar()
