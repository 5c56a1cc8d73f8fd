"""Client-side quota accounting for quota-gated tool operations."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from pydantic import ValidationError

from pdfier.errors import QuotaExceededError, SessionNotReadyError
from pdfier.session.context import SessionContext
from pdfier.session.models import GuestUsageMetrics, UsageMetrics, is_guest

logger = logging.getLogger(__name__)


def processed_today(metrics: GuestUsageMetrics) -> int:
    """Guest count for today; a counter from an earlier day counts as zero."""
    if metrics.quota_date != date.today():
        return 0
    return metrics.pdf_processed_today


class UsageAccountant:
    """Pre-checks and books guest usage around each upload.

    Guests are counted locally: a unit is reserved before the request so
    rapid resubmits cannot overshoot the limit, and refunded when the
    request fails. Authenticated users are counted by the server, whose
    ``user_usage`` is copied back after each successful call.
    """

    def __init__(self, session: SessionContext):
        self.session = session

    def reserve(self, operation: str) -> bool:
        """Book one guest unit, or raise ``QuotaExceededError`` at the limit.

        Returns True when a unit was booked. A session that has not been
        initialized is neither guest nor user, so nothing is let through.
        """
        state = self.session.state
        if state.user is None or state.is_initializing:
            raise SessionNotReadyError()
        user = state.user
        if not is_guest(user):
            return False

        metrics = user.usage_metrics
        used = processed_today(metrics)
        if used >= metrics.pdf_processed_limit_daily:
            logger.info(
                "Guest daily limit reached (%s/%s), blocking %s",
                used,
                metrics.pdf_processed_limit_daily,
                operation,
            )
            raise QuotaExceededError(metrics.pdf_processed_limit_daily, operation)

        self.session.update_guest_usage(used + 1)
        return True

    def release(self) -> None:
        """Refund a guest unit after a failed request."""
        user = self.session.user
        if not is_guest(user):
            return
        self.session.update_guest_usage(max(0, processed_today(user.usage_metrics) - 1))

    def reconcile(self, payload: Optional[dict]) -> None:
        """Adopt the server's usage counters when the response carries them."""
        if not payload or not payload.get("user_usage"):
            return
        try:
            usage = UsageMetrics.model_validate(payload["user_usage"])
        except ValidationError as e:
            logger.warning("Ignoring malformed user_usage in response: %s", e)
            return
        self.session.update_user_usage(usage)
