"""Authentication endpoints: login, refresh, signup, OTP and password reset."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import httpx

from pdfier.client.backend import BackendClient, parse_json, raise_for_backend
from pdfier.errors import PdfierError

if TYPE_CHECKING:
    from pdfier.session.context import SessionContext
    from pdfier.session.models import User

logger = logging.getLogger(__name__)

USERS_ME_PATH = "/api/v1/users/me"
REFRESH_PATH = "/api/v1/auth/refresh"
LOGIN_PATH = "/api/v1/auth/login"
SIGNUP_PATH = "/api/v1/auth/signup"
VERIFY_PATH = "/api/v1/auth/verify"
RESEND_OTP_PATH = "/api/v1/auth/resend-otp"
FORGOT_PATH = "/api/v1/auth/forgot"
RESET_PASSWORD_PATH = "/api/v1/auth/forgot/reset-password"


class AuthAPI:
    """Calls to the backend's auth and user endpoints."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def fetch_current_user(self, access_token: Optional[str]) -> httpx.Response:
        """GET the current user. The raw response is returned so callers can branch on status."""
        return await self.backend.get(
            USERS_ME_PATH,
            headers={"Authorization": f"Bearer {access_token}" if access_token else ""},
        )

    async def refresh(self, refresh_token: str) -> httpx.Response:
        """Exchange a refresh credential for a new access credential."""
        return await self.backend.post(REFRESH_PATH, json={"refresh_token": refresh_token})

    async def login(self, username: str, password: str) -> dict:
        response = await self.backend.post(
            LOGIN_PATH,
            data={"username": username, "password": password},
        )
        raise_for_backend(response, "Login failed. Please check your credentials.")
        return parse_json(response)

    async def signup(self, username: str, email: str, password: str) -> dict:
        """Register an account. The response carries the ``user_id`` for OTP verification."""
        response = await self.backend.post(
            SIGNUP_PATH,
            json={"username": username, "email": email, "password": password},
        )
        raise_for_backend(response, "Signup failed. Please try again.")
        return parse_json(response)

    async def verify_otp(self, user_id: str, otp: str) -> dict:
        response = await self.backend.post(VERIFY_PATH, json={"user_id": user_id, "otp": otp})
        raise_for_backend(response, "OTP verification failed. Please try again.")
        return parse_json(response)

    async def resend_otp(self, user_id: str, email: str) -> dict:
        response = await self.backend.post(
            RESEND_OTP_PATH, json={"user_id": user_id, "email": email}
        )
        raise_for_backend(response, "Failed to resend OTP.")
        return parse_json(response)

    async def forgot_password(self, email: str) -> dict:
        """Start a password reset. The backend mails an OTP and returns ``user_id``."""
        response = await self.backend.post(FORGOT_PATH, json={"email": email})
        raise_for_backend(response, "Failed to send OTP. Please try again.")
        return parse_json(response)

    async def reset_password(self, user_id: str, new_password: str) -> dict:
        response = await self.backend.post(
            RESET_PASSWORD_PATH,
            json={"user_id": user_id, "new_password": new_password},
        )
        raise_for_backend(response, "Password reset failed. Please try again.")
        return parse_json(response)


async def sign_in(
    session: "SessionContext",
    auth: AuthAPI,
    username: str,
    password: str,
) -> "User":
    """Run the login exchange and commit the result to the session.

    The user record is taken from the login payload when present, otherwise
    fetched from ``/users/me`` with the new access token.
    """
    from pdfier.session.models import User

    data = await auth.login(username, password)
    access_token = data.get("access_token")
    refresh_token = data.get("refresh_token")
    if not access_token or not refresh_token:
        raise PdfierError("Login response did not include credentials")

    if data.get("user"):
        user = User.model_validate(data["user"])
    else:
        response = await auth.fetch_current_user(access_token)
        raise_for_backend(response, "Failed to load your account.")
        user = User.model_validate(response.json())

    session.login(user, refresh_token, access_token)
    logger.info("Signed in as %s", user.name)
    return user
