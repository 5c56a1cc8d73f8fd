"""Exceptions raised by the PDFier client."""

from __future__ import annotations

from typing import Any, Optional


class PdfierError(Exception):
    """Base error for the PDFier client."""
    pass


class ConfigError(PdfierError):
    """Missing or invalid configuration."""
    pass


class LoginRequiredError(PdfierError):
    """The action needs an authenticated session."""

    def __init__(self, message: str = "Please log in to continue."):
        super().__init__(message)


class SessionNotReadyError(PdfierError):
    """The session has not finished start-up recovery yet."""

    def __init__(self, message: str = "Session is still initializing, please retry."):
        super().__init__(message)


class BackendError(PdfierError):
    """Non-OK response from the PDFier backend."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend error {status_code}: {detail}")


class ToolError(PdfierError):
    """A merge/compress/protect call did not succeed."""

    def __init__(self, operation: str, detail: str, status_code: Optional[int] = None):
        self.operation = operation
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class QuotaExceededError(PdfierError):
    """Guest daily limit reached before an operation was attempted."""

    def __init__(self, limit: int, operation: str):
        self.limit = limit
        self.operation = operation
        super().__init__(
            f"You have exceeded the daily limit of {limit} PDF files to {operation}."
        )


def format_detail(payload: Any, fallback: str) -> str:
    """Flatten a FastAPI-style error payload into a single message.

    Handles ``{"detail": [{"msg": ...}, ...]}`` validation errors,
    ``{"detail": {"message": ...}}`` and plain string details.
    """
    if not isinstance(payload, dict):
        return fallback
    detail = payload.get("detail")
    if isinstance(detail, list):
        messages = [str(item.get("msg", "")) for item in detail if isinstance(item, dict)]
        joined = ". ".join(m for m in messages if m)
        return joined or fallback
    if isinstance(detail, dict):
        return str(detail.get("message") or fallback)
    if detail:
        return str(detail)
    return fallback
