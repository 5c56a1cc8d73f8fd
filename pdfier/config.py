"""Configuration and local storage for the PDFier client."""

from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from pdfier.errors import ConfigError

DEFAULT_DATA_DIR = "./data"
DEFAULT_ACCESS_TOKEN_TTL_MINUTES = 420
DEFAULT_REFRESH_TOKEN_TTL_DAYS = 90
DEFAULT_GUEST_DAILY_LIMIT = 10
DEFAULT_HTTP_TIMEOUT = 120.0


@dataclass
class Settings:
    """Runtime settings for the client."""

    backend_url: Optional[str] = None
    environment: str = "development"
    data_dir: str = DEFAULT_DATA_DIR
    access_token_ttl_minutes: int = DEFAULT_ACCESS_TOKEN_TTL_MINUTES
    refresh_token_ttl_days: int = DEFAULT_REFRESH_TOKEN_TTL_DAYS
    guest_daily_limit: int = DEFAULT_GUEST_DAILY_LIMIT
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    def __post_init__(self):
        if self.refresh_token_ttl <= self.access_token_ttl:
            raise ConfigError(
                "Refresh token lifetime must be longer than the access token lifetime"
            )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_ttl_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_ttl_days)

    @property
    def cookie_jar_path(self) -> Path:
        return Path(self.data_dir) / "cookies.lwp"

    @property
    def state_db_path(self) -> Path:
        return Path(self.data_dir) / "pdfier.db"


def _number_env(name: str, default, cast=int):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def get_settings() -> Settings:
    """Load settings from the environment."""
    return Settings(
        backend_url=os.environ.get("PDFIER_BACKEND_URL") or None,
        environment=os.environ.get("PDFIER_ENV", "development"),
        data_dir=os.environ.get("PDFIER_DATA_DIR", DEFAULT_DATA_DIR),
        access_token_ttl_minutes=_number_env(
            "PDFIER_ACCESS_TOKEN_TTL_MINUTES", DEFAULT_ACCESS_TOKEN_TTL_MINUTES
        ),
        refresh_token_ttl_days=_number_env(
            "PDFIER_REFRESH_TOKEN_TTL_DAYS", DEFAULT_REFRESH_TOKEN_TTL_DAYS
        ),
        guest_daily_limit=_number_env("PDFIER_GUEST_DAILY_LIMIT", DEFAULT_GUEST_DAILY_LIMIT),
        http_timeout=_number_env("PDFIER_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT, cast=float),
    )


class StateStore:
    """SQLite key/value table for client state kept between runs."""

    def __init__(self, db_path: str | Path):
        db_file = Path(db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_file), check_same_thread=False)
        with self.conn:
            self.conn.execute(
                "CREATE TABLE IF NOT EXISTS client_state ("
                "key TEXT PRIMARY KEY, "
                "value TEXT NOT NULL, "
                "updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.conn.execute(
            "SELECT value FROM client_state WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else default

    def set(self, key: str, value: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO client_state (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = CURRENT_TIMESTAMP",
                (key, value),
            )

    def close(self) -> None:
        self.conn.close()
