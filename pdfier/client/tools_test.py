from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pdfier.client.tools import (
    NETWORK_ERROR_MESSAGE,
    ProtectPermissions,
    ToolResult,
    collect_pdf_files,
)
from pdfier.errors import QuotaExceededError, ToolError
from pdfier.session.models import User


@pytest.fixture
def pdfs(tmp_path):
    paths = []
    for name in ("a.pdf", "b.PDF"):
        path = tmp_path / name
        path.write_bytes(b"%PDF-1.4 " + name.encode())
        paths.append(path)
    return paths


def _guest_services(make_services, handler, processed_today=0):
    services = make_services(handler)
    services.session.logout()
    services.session.update_guest_usage(processed_today)
    return services


def _guest_count(services) -> int:
    return services.session.user.usage_metrics.pdf_processed_today


class TestCollectPdfFiles:
    def test_skips_non_pdf_files(self, tmp_path, pdfs):
        notes = tmp_path / "notes.txt"
        notes.write_text("hello")

        assert collect_pdf_files([pdfs[0], notes, pdfs[1]], "merge") == pdfs

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ToolError, match="File not found"):
            collect_pdf_files([tmp_path / "missing.pdf"], "compress")


class TestProtectPermissions:
    def test_json_keys(self):
        permissions = ProtectPermissions(printing="low", copying=True, form_filling=True)

        assert json.loads(permissions.to_json()) == {
            "printing": "low",
            "modifying": False,
            "copying": True,
            "formFilling": True,
        }


class TestGuestQuota:
    def test_blocks_before_any_request_at_limit(self, make_services, pdfs):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"})

        services = _guest_services(make_services, handler, processed_today=2)

        with pytest.raises(QuotaExceededError):
            asyncio.run(services.tools.merge(pdfs))

        assert calls == []
        assert _guest_count(services) == 2

    def test_counts_successful_operation(self, make_services, pdfs):
        services = _guest_services(
            make_services,
            lambda request: httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"}),
        )

        result = asyncio.run(services.tools.compress(pdfs[:1]))

        assert result.download_urls == ["http://pdfier.test/out.pdf"]
        assert _guest_count(services) == 1

    def test_refunds_on_server_error(self, make_services, pdfs):
        services = _guest_services(
            make_services,
            lambda request: httpx.Response(500, json={"detail": "Merge failed on server"}),
            processed_today=1,
        )

        with pytest.raises(ToolError) as exc_info:
            asyncio.run(services.tools.merge(pdfs))

        assert exc_info.value.detail == "Merge failed on server"
        assert exc_info.value.status_code == 500
        assert _guest_count(services) == 1

    def test_refunds_on_network_error(self, make_services, pdfs):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        services = _guest_services(make_services, handler)

        with pytest.raises(ToolError, match=NETWORK_ERROR_MESSAGE):
            asyncio.run(services.tools.merge(pdfs))

        assert _guest_count(services) == 0

    def test_fresh_session_is_recovered_before_counting(self, make_services, pdfs):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path.endswith("/users/me"):
                return httpx.Response(401)
            return httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"})

        services = make_services(handler)
        assert services.session.user is None

        asyncio.run(services.tools.compress(pdfs[:1]))

        assert paths == ["/api/v1/users/me", "/api/v1/tools/pdf/compress"]
        assert services.session.user.plan_type == "guest"
        assert _guest_count(services) == 1


class TestAuthenticatedTools:
    def test_reconciles_server_usage(self, make_services, user_data, pdfs):
        seen = []
        usage = dict(user_data["usage_metrics"], pdf_processed_today=5)

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"download_urls": ["http://pdfier.test/1.pdf"], "user_usage": usage},
            )

        services = make_services(handler)
        services.session.login(User.model_validate(user_data), "refresh-1", "access-1")

        asyncio.run(services.tools.merge(pdfs))

        assert services.session.user.usage_metrics.pdf_processed_today == 5
        assert seen[0].headers["authorization"] == "Bearer access-1"
        assert seen[0].url.path == "/api/v1/tools/pdf/merge"

    def test_server_limit_error_is_flattened(self, make_services, user_data, pdfs):
        services = make_services(
            lambda request: httpx.Response(
                429, json={"detail": {"message": "Daily PDF limit reached"}}
            )
        )
        services.session.login(User.model_validate(user_data), "refresh-1", "access-1")

        with pytest.raises(ToolError, match="Daily PDF limit reached"):
            asyncio.run(services.tools.compress(pdfs[:1], "high"))

        assert services.session.user.usage_metrics.pdf_processed_today == 1

    def test_malformed_server_usage_keeps_result(self, make_services, user_data, pdfs):
        services = make_services(
            lambda request: httpx.Response(
                200,
                json={"download_urls": ["http://pdfier.test/1.pdf"], "user_usage": "oops"},
            )
        )
        services.session.login(User.model_validate(user_data), "refresh-1", "access-1")

        result = asyncio.run(services.tools.merge(pdfs))

        assert result.download_urls == ["http://pdfier.test/1.pdf"]
        assert services.session.user.usage_metrics.pdf_processed_today == 1


class TestToolRequests:
    def test_merge_needs_two_pdfs(self, make_services, pdfs):
        services = _guest_services(make_services, lambda request: httpx.Response(200))

        with pytest.raises(ToolError, match="at least two"):
            asyncio.run(services.tools.merge(pdfs[:1]))

        assert _guest_count(services) == 0

    def test_merge_uploads_every_file(self, make_services, pdfs):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"})

        services = _guest_services(make_services, handler)

        asyncio.run(services.tools.merge(pdfs))

        assert seen[0].content.count(b'name="files"') == 2
        assert b"%PDF-1.4 a.pdf" in seen[0].content

    def test_compress_sends_level(self, make_services, pdfs):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"})

        services = _guest_services(make_services, handler)

        asyncio.run(services.tools.compress(pdfs[:1], "low"))

        assert b'name="compression_level"' in seen[0].content
        assert b"low" in seen[0].content

    def test_compress_rejects_unknown_level(self, make_services, pdfs):
        services = _guest_services(make_services, lambda request: httpx.Response(200))

        with pytest.raises(ToolError, match="Unknown compression level"):
            asyncio.run(services.tools.compress(pdfs[:1], "extreme"))

    def test_protect_sends_password_and_permissions(self, make_services, pdfs):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"})

        services = _guest_services(make_services, handler)

        asyncio.run(
            services.tools.protect(pdfs[:1], "s3cret", ProtectPermissions(printing="none"))
        )

        content = seen[0].content
        assert seen[0].url.path == "/api/v1/tools/pdf/protect"
        assert b"s3cret" in content
        assert b'"formFilling": false' in content

    def test_protect_requires_password(self, make_services, pdfs):
        services = _guest_services(make_services, lambda request: httpx.Response(200))

        with pytest.raises(ToolError, match="password"):
            asyncio.run(services.tools.protect(pdfs[:1], ""))


class TestDownload:
    def test_saves_each_result(self, make_services, tmp_path):
        def handler(request):
            return httpx.Response(200, content=b"result " + request.url.path.encode())

        services = make_services(handler)
        result = ToolResult(
            download_urls=["http://pdfier.test/files/merged.pdf", "http://pdfier.test/files/"]
        )

        saved = asyncio.run(services.tools.download(result, tmp_path / "out"))

        assert [p.name for p in saved] == ["merged.pdf", "result_2.pdf"]
        assert saved[0].read_bytes() == b"result /files/merged.pdf"
