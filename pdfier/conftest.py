from __future__ import annotations

import httpx
import pytest

from pdfier.config import Settings
from pdfier.factory import build_services

BACKEND_URL = "http://pdfier.test"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        backend_url=BACKEND_URL,
        data_dir=str(tmp_path / "data"),
        guest_daily_limit=2,
    )


@pytest.fixture
def make_services(settings):
    """Build services whose backend calls are answered by ``handler``."""

    def make(handler, reload_hook=None):
        return build_services(
            settings,
            transport=httpx.MockTransport(handler),
            reload_hook=reload_hook,
        )

    return make


@pytest.fixture
def user_data():
    return {
        "id": "u-1",
        "name": "Ada",
        "email": "ada@example.com",
        "verified": True,
        "plan_type": "basic",
        "usage_metrics": {
            "pdf_processed_today": 1,
            "pdf_processed_limit_daily": 20,
            "rag_queries_this_month": 4,
            "rag_queries_limit_monthly": 100,
            "rag_indexed_documents_count": 2,
            "rag_indexed_documents_limit": 10,
            "word_conversions_today": 0,
            "word_conversions_limit_daily": 5,
            "last_quota_reset_date": "2026-10-01T00:00:00Z",
        },
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-10-01T00:00:00Z",
    }
