"""Session user records, usage metrics and the persisted session state."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

GUEST_ID = "guest"
GUEST_PLAN = "guest"


class UsageMetrics(BaseModel):
    """Server-side counters and limits for an authenticated user."""

    model_config = ConfigDict(extra="ignore")

    pdf_processed_today: int = 0
    pdf_processed_limit_daily: int = 0
    rag_queries_this_month: int = 0
    rag_queries_limit_monthly: int = 0
    rag_indexed_documents_count: int = 0
    rag_indexed_documents_limit: int = 0
    word_conversions_today: int = 0
    word_conversions_limit_daily: int = 0
    last_quota_reset_date: Optional[datetime] = None


class GuestUsageMetrics(BaseModel):
    """Client-local daily PDF counter for a guest."""

    pdf_processed_today: int = 0
    pdf_processed_limit_daily: int
    quota_date: date = Field(default_factory=date.today)


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    email: Optional[str] = None
    verified: bool = False
    ip_address: Optional[str] = None
    plan_type: Literal["basic", "premium"]
    usage_metrics: UsageMetrics = Field(default_factory=UsageMetrics)
    created_at: datetime
    updated_at: datetime


class GuestUser(BaseModel):
    id: Literal["guest"] = GUEST_ID
    name: Literal["Guest"] = "Guest"
    email: Literal["guest@example.com"] = "guest@example.com"
    verified: Literal[False] = False
    plan_type: Literal["guest"] = GUEST_PLAN
    usage_metrics: GuestUsageMetrics


SessionUser = Annotated[Union[User, GuestUser], Field(discriminator="plan_type")]


def default_guest_user(daily_limit: int) -> GuestUser:
    """Fresh guest record with an empty counter for today."""
    return GuestUser(
        usage_metrics=GuestUsageMetrics(
            pdf_processed_today=0,
            pdf_processed_limit_daily=daily_limit,
        )
    )


def is_guest(user: Optional[Union[User, GuestUser]]) -> bool:
    return user is not None and user.plan_type == GUEST_PLAN


class SessionState(BaseModel):
    """Process-wide session record.

    Persisted as a single JSON entry with camelCase keys. Credentials are
    not part of it; they live only in the cookie jar.
    """

    model_config = ConfigDict(populate_by_name=True)

    is_logged_in: bool = Field(default=False, alias="isLoggedIn")
    user: Optional[SessionUser] = None
    is_initializing: bool = Field(default=False, alias="isInitializing")

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)
