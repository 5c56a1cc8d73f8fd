"""Factory for wiring the session context and API clients together."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from pdfier.client.auth import AuthAPI
from pdfier.client.backend import BackendClient
from pdfier.client.chat import ChatAPI
from pdfier.client.tools import ToolsAPI
from pdfier.config import Settings, StateStore, get_settings
from pdfier.session.context import SessionContext
from pdfier.session.credentials import CredentialStore
from pdfier.session.store import SessionStore


@dataclass
class Services:
    """Everything one application instance needs, sharing a single session."""

    settings: Settings
    backend: BackendClient
    auth: AuthAPI
    session: SessionContext
    tools: ToolsAPI
    chat: ChatAPI

    def close(self) -> None:
        """Release the local state database."""
        self.session.store.close()


def build_services(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    reload_hook: Optional[Callable[[], None]] = None,
) -> Services:
    """
    Create the session context and API clients.

    Args:
        settings: Optional Settings (loaded from the environment if not provided)
        transport: Optional httpx transport, used by tests to fake the backend
        reload_hook: Called after the access token was refreshed

    Returns:
        A Services bundle
    """
    if settings is None:
        settings = get_settings()

    backend = BackendClient.from_settings(settings, transport=transport)
    auth = AuthAPI(backend)
    credentials = CredentialStore(
        settings.cookie_jar_path,
        domain=backend.host,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        secure=settings.is_production,
    )
    store = SessionStore(StateStore(settings.state_db_path))
    session = SessionContext(
        auth,
        credentials,
        store,
        guest_daily_limit=settings.guest_daily_limit,
        reload_hook=reload_hook,
    )
    return Services(
        settings=settings,
        backend=backend,
        auth=auth,
        session=session,
        tools=ToolsAPI(backend, session),
        chat=ChatAPI(backend, credentials),
    )
