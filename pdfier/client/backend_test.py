from __future__ import annotations

import asyncio

import httpx
import pytest

from pdfier.client.backend import BackendClient, bearer, parse_json
from pdfier.errors import ConfigError


class TestHelpers:
    def test_bearer(self):
        assert bearer("t") == {"Authorization": "Bearer t"}
        assert bearer(None) == {}

    def test_parse_json_wraps_lists(self):
        assert parse_json(httpx.Response(200, json=[1, 2])) == {"data": [1, 2]}

    def test_parse_json_tolerates_empty_body(self):
        assert parse_json(httpx.Response(204)) == {}


class TestBackendClient:
    def test_strips_trailing_slash(self):
        client = BackendClient("http://pdfier.test/")
        assert client.url("/api/v1/users/me") == "http://pdfier.test/api/v1/users/me"

    def test_host(self):
        assert BackendClient("https://api.pdfier.com:8443").host == "api.pdfier.com"
        assert BackendClient(None).host == "localhost"

    def test_missing_base_url(self):
        with pytest.raises(ConfigError):
            BackendClient(None).url("/x")

    def test_request_uses_transport(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        client = BackendClient("http://pdfier.test", transport=httpx.MockTransport(handler))

        response = asyncio.run(client.get("/ping", params={"q": "1"}))

        assert response.json() == {"ok": True}
        assert str(seen[0].url) == "http://pdfier.test/ping?q=1"
