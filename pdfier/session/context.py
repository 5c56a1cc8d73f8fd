"""Session context: start-up recovery, login/logout and usage updates.

One ``SessionContext`` is built per application instance and handed to
whatever needs the session (CLI commands, API routes, tool clients). State
changes go through its methods only and are persisted on every change.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

import httpx

from pdfier.client.auth import AuthAPI
from pdfier.client.backend import parse_json
from pdfier.errors import ConfigError, LoginRequiredError
from pdfier.session.credentials import CredentialStore
from pdfier.session.models import (
    GuestUser,
    SessionState,
    UsageMetrics,
    User,
    default_guest_user,
    is_guest,
)
from pdfier.session.store import SessionStore

logger = logging.getLogger(__name__)


class InitOutcome(str, Enum):
    AUTHENTICATED = "authenticated"
    GUEST = "guest"
    SESSION_EXPIRED = "session_expired"
    RELOAD = "reload"


class SessionContext:
    def __init__(
        self,
        auth: AuthAPI,
        credentials: CredentialStore,
        store: SessionStore,
        guest_daily_limit: int,
        reload_hook: Optional[Callable[[], None]] = None,
    ):
        self.auth = auth
        self.credentials = credentials
        self.store = store
        self.guest_daily_limit = guest_daily_limit
        self.reload_hook = reload_hook
        self._state = store.load()
        self._pending_init: Optional[asyncio.Future] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> Optional[Union[User, GuestUser]]:
        return self._state.user

    def _set(self, **changes) -> None:
        self._state = self._state.model_copy(update=changes)
        self.store.save(self._state)

    async def initialize_auth(self) -> InitOutcome:
        """Recover the session at start-up.

        Concurrent callers share the pass already in flight. The call never
        raises: every failure ends with the visitor demoted to guest.
        """
        if self._pending_init is None:
            self._pending_init = asyncio.ensure_future(self._initialize_once())
        return await asyncio.shield(self._pending_init)

    async def _initialize_once(self) -> InitOutcome:
        try:
            return await self._initialize()
        finally:
            self._pending_init = None

    async def _initialize(self) -> InitOutcome:
        self._set(is_initializing=True)
        try:
            return await self._recover_session()
        except (httpx.HTTPError, ValueError, ConfigError, OSError) as e:
            logger.error("Error during initial auth check: %s", e)
            self._demote_to_guest()
            return InitOutcome.GUEST
        finally:
            self._set(is_initializing=False)

    async def _recover_session(self) -> InitOutcome:
        response = await self.auth.fetch_current_user(self.credentials.get_access())

        if response.is_success:
            user = User.model_validate(response.json())
            self._set(user=user, is_logged_in=True)
            return InitOutcome.AUTHENTICATED

        if response.status_code != 401:
            logger.error("Error during initial auth check: HTTP %s", response.status_code)
            self._demote_to_guest()
            return InitOutcome.GUEST

        logger.info("Access token is invalid or has expired, trying refresh")
        refresh_token = self.credentials.get_refresh()
        if not refresh_token:
            logger.warning("No active session found, continuing as guest")
            self._demote_to_guest()
            return InitOutcome.GUEST

        refresh_response = await self.auth.refresh(refresh_token)
        access_token = None
        if refresh_response.is_success:
            access_token = parse_json(refresh_response).get("access_token")
        if not access_token:
            logger.warning("Refresh token is invalid or has expired, continuing as guest")
            self._demote_to_guest()
            return InitOutcome.SESSION_EXPIRED

        self.credentials.set_access(access_token)
        logger.info("Access token refreshed, reloading")
        if self.reload_hook is not None:
            self.reload_hook()
        return InitOutcome.RELOAD

    def login(self, user: User, refresh_token: str, access_token: str) -> None:
        """Commit a completed login. Performs no network call."""
        self.credentials.set_refresh(refresh_token)
        self.credentials.set_access(access_token)
        self._set(user=user, is_logged_in=True)

    def logout(self) -> None:
        """Drop both credentials and fall back to guest. Safe in any state."""
        self._clear_credentials()
        self._set(user=self._guest_user(), is_logged_in=False)

    def update_user_usage(self, usage: UsageMetrics) -> None:
        """Replace an authenticated user's metrics. No-op for guests."""
        user = self._state.user
        if user is None or is_guest(user):
            return
        updated = user.model_copy(
            update={"usage_metrics": usage, "updated_at": datetime.now(timezone.utc)}
        )
        self._set(user=updated)

    def update_guest_usage(self, processed_today: int) -> None:
        """Replace a guest's processed-today counter. No-op for authenticated users."""
        user = self._state.user
        if not is_guest(user):
            logger.debug("Not a guest user, ignoring guest usage update")
            return
        metrics = user.usage_metrics.model_copy(
            update={"pdf_processed_today": processed_today, "quota_date": date.today()}
        )
        self._set(user=user.model_copy(update={"usage_metrics": metrics}))

    def _demote_to_guest(self) -> None:
        self._set(user=self._guest_user(), is_logged_in=False)
        self._clear_credentials()

    def _clear_credentials(self) -> None:
        try:
            self.credentials.clear()
        except OSError as e:
            logger.error("Failed to clear credentials: %s", e)

    def _guest_user(self) -> GuestUser:
        """Today's guest record, kept so the counter survives logouts and restarts."""
        user = self._state.user
        if is_guest(user) and user.usage_metrics.quota_date == date.today():
            return user
        return default_guest_user(self.guest_daily_limit)


async def restore_session(session: SessionContext) -> InitOutcome:
    """Initialize, re-running once after a refresh for hosts with no view to reload."""
    outcome = await session.initialize_auth()
    if outcome is InitOutcome.RELOAD:
        outcome = await session.initialize_auth()
    if outcome is InitOutcome.RELOAD:
        logger.warning("Refreshed access token was rejected, continuing as guest")
        session.logout()
        outcome = InitOutcome.SESSION_EXPIRED
    return outcome


def require_login(session: SessionContext) -> User:
    """Return the signed-in user, or raise ``LoginRequiredError``."""
    state = session.state
    if state.is_initializing:
        raise LoginRequiredError("Session is still initializing, please retry.")
    if not state.is_logged_in or is_guest(state.user) or state.user is None:
        raise LoginRequiredError()
    return state.user
