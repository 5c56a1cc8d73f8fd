"""Client session and usage-quota management."""

from pdfier.session.context import (
    InitOutcome,
    SessionContext,
    require_login,
    restore_session,
)
from pdfier.session.credentials import ACCESS_COOKIE, REFRESH_COOKIE, CredentialStore
from pdfier.session.models import (
    GuestUser,
    GuestUsageMetrics,
    SessionState,
    UsageMetrics,
    User,
)
from pdfier.session.store import SessionStore
from pdfier.session.usage import UsageAccountant

__all__ = [
    "InitOutcome",
    "SessionContext",
    "require_login",
    "restore_session",
    "ACCESS_COOKIE",
    "REFRESH_COOKIE",
    "CredentialStore",
    "GuestUser",
    "GuestUsageMetrics",
    "SessionState",
    "UsageMetrics",
    "User",
    "SessionStore",
    "UsageAccountant",
]
