"""HTTP client for the PDFier backend API.

All calls go through ``httpx.AsyncClient``. A transport can be injected so
tests can answer requests with ``httpx.MockTransport``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from pdfier.config import Settings
from pdfier.errors import BackendError, ConfigError, format_detail

logger = logging.getLogger(__name__)


def bearer(token: Optional[str]) -> dict[str, str]:
    """Authorization header for an access token, empty when there is none."""
    return {"Authorization": f"Bearer {token}"} if token else {}


def raise_for_backend(response: httpx.Response, fallback: str) -> None:
    """Raise ``BackendError`` with the server's detail for a non-OK response."""
    if response.is_success:
        return
    try:
        payload = response.json()
    except ValueError:
        payload = None
    raise BackendError(response.status_code, format_detail(payload, fallback))


def parse_json(response: httpx.Response) -> dict:
    """Decode a JSON object body, treating an empty or non-JSON body as ``{}``."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


class BackendClient:
    """Thin async wrapper that knows the backend base URL."""

    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BackendClient":
        return cls(settings.backend_url, timeout=settings.http_timeout, transport=transport)

    @property
    def host(self) -> str:
        """Host name the credential cookies are scoped to."""
        if not self.base_url:
            return "localhost"
        return httpx.URL(self.base_url).host or "localhost"

    def url(self, path: str) -> str:
        if not self.base_url:
            raise ConfigError("PDFIER_BACKEND_URL is not set")
        return f"{self.base_url}{path}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        files: Optional[list] = None,
    ) -> httpx.Response:
        url = self.url(path)
        logger.debug("%s %s", method, url)
        async with self._client() as client:
            return await client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json,
                data=data,
                files=files,
            )

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def download(self, url: str, dest: Path) -> Path:
        """Stream a result file from an absolute URL to ``dest``."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        async with self._client() as client:
            async with client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise BackendError(response.status_code, f"Failed to download {url}")
                with open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        return dest
