"""Persistence of the session state between runs."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from pdfier.config import StateStore
from pdfier.session.models import SessionState

logger = logging.getLogger(__name__)

STORAGE_KEY = "auth-storage"


class SessionStore:
    """Reads and writes the ``auth-storage`` entry of the state store."""

    def __init__(self, state_store: StateStore, key: str = STORAGE_KEY):
        self.state_store = state_store
        self.key = key

    def load(self) -> SessionState:
        raw = self.state_store.get(self.key)
        if raw is None:
            return SessionState()
        try:
            state = SessionState.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Session state rehydration failed, starting fresh: %s", e)
            return SessionState()
        logger.debug("Session state rehydrated (logged_in=%s)", state.is_logged_in)
        return state

    def save(self, state: SessionState) -> None:
        self.state_store.set(self.key, state.to_storage())

    def close(self) -> None:
        self.state_store.close()
