from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from pdfier.api.server import create_app
from pdfier.errors import SessionNotReadyError
from pdfier.session.models import User


def _backend(user_data):
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/v1/users/me":
            if request.headers.get("authorization") == "Bearer a-1":
                return httpx.Response(200, json=user_data)
            return httpx.Response(401)
        if path == "/api/v1/auth/login":
            return httpx.Response(200, json={"access_token": "a-1", "refresh_token": "r-1"})
        if path == "/api/v1/auth/signup":
            return httpx.Response(400, json={"detail": "Username already taken"})
        if path.startswith("/api/v1/tools/pdf/"):
            return httpx.Response(200, json={"download_url": "http://pdfier.test/out.pdf"})
        if path == "/api/v1/conversations":
            return httpx.Response(200, json=[{"id": "conv-1", "collection_id": "c1"}])
        return httpx.Response(404)

    return handler


@pytest.fixture
def services(make_services, user_data):
    return make_services(_backend(user_data))


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as client:
        yield client


@pytest.fixture
def pdf(tmp_path):
    path = tmp_path / "a.pdf"
    path.write_bytes(b"%PDF-1.4")
    return path


class TestSessionRoutes:
    def test_root(self, client):
        assert client.get("/").json()["message"] == "PDFier API"

    def test_initialize_without_credentials(self, client):
        response = client.post("/api/session/initialize")

        assert response.status_code == 200
        body = response.json()
        assert body["outcome"] == "guest"
        assert body["session"]["isLoggedIn"] is False
        assert body["session"]["user"]["plan_type"] == "guest"
        assert body["session"]["isInitializing"] is False

    def test_login_then_session(self, client):
        response = client.post("/api/auth/login", json={"username": "ada", "password": "pw"})

        assert response.status_code == 200
        session = client.get("/api/session").json()
        assert session["isLoggedIn"] is True
        assert session["user"]["name"] == "Ada"

    def test_logout(self, client, services, user_data):
        services.session.login(User.model_validate(user_data), "r-1", "a-1")

        response = client.post("/api/auth/logout")

        assert response.json()["session"]["isLoggedIn"] is False
        assert services.session.credentials.get_refresh() is None

    def test_backend_error_passes_status_through(self, client):
        response = client.post(
            "/api/auth/signup",
            json={"username": "ada", "email": "ada@example.com", "password": "pw"},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Username already taken"}

    def test_reset_password_mismatch(self, client):
        response = client.post(
            "/api/auth/reset-password",
            json={"user_id": "u-1", "new_password": "a", "confirm_password": "b"},
        )

        assert response.status_code == 400


class TestToolRoutes:
    def test_compress_as_guest(self, client, services, pdf):
        services.session.logout()

        response = client.post("/api/tools/compress", json={"file_paths": [str(pdf)]})

        assert response.status_code == 200
        assert response.json()["download_urls"] == ["http://pdfier.test/out.pdf"]
        assert services.session.user.usage_metrics.pdf_processed_today == 1

    def test_quota_exceeded_is_429(self, client, services, pdf):
        services.session.logout()
        services.session.update_guest_usage(2)

        response = client.post("/api/tools/compress", json={"file_paths": [str(pdf)]})

        assert response.status_code == 429
        assert "daily limit of 2" in response.json()["detail"]

    def test_merge_validation_is_400(self, client, services, pdf):
        services.session.logout()

        response = client.post("/api/tools/merge", json={"file_paths": [str(pdf)]})

        assert response.status_code == 400

    def test_protect_password_mismatch(self, client, pdf):
        response = client.post(
            "/api/tools/protect",
            json={"file_paths": [str(pdf)], "password": "a", "confirm_password": "b"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Passwords do not match"


class TestStartup:
    def test_session_recovered_before_first_request(self, services):
        with TestClient(create_app(services)):
            assert services.session.state.is_initializing is False
            assert services.session.user.plan_type == "guest"

    def test_fresh_server_enforces_guest_quota(self, make_services, user_data, pdf):
        tool_calls = []
        backend = _backend(user_data)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.startswith("/api/v1/tools/pdf/"):
                tool_calls.append(request)
            return backend(request)

        services = make_services(handler)
        with TestClient(create_app(services)) as client:
            statuses = [
                client.post("/api/tools/compress", json={"file_paths": [str(pdf)]}).status_code
                for _ in range(4)
            ]

        assert statuses == [200, 200, 429, 429]
        assert len(tool_calls) == 2
        assert services.session.user.plan_type == "guest"

    def test_session_not_ready_is_503(self, client, services, monkeypatch, pdf):
        async def not_ready(*args, **kwargs):
            raise SessionNotReadyError()

        monkeypatch.setattr(services.tools, "compress", not_ready)

        response = client.post("/api/tools/compress", json={"file_paths": [str(pdf)]})

        assert response.status_code == 503
        assert "still initializing" in response.json()["detail"]


class TestChatRoutes:
    def test_requires_login(self, client, services):
        services.session.logout()

        response = client.get("/api/conversations", params={"collection_id": "c1"})

        assert response.status_code == 401

    def test_lists_conversations(self, client, services, user_data):
        services.session.login(User.model_validate(user_data), "r-1", "a-1")

        response = client.get("/api/conversations", params={"collection_id": "c1"})

        assert response.status_code == 200
        assert response.json()[0]["id"] == "conv-1"
