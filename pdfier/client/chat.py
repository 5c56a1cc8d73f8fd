"""Chat-with-PDF services: conversations, documents and messages.

Several endpoints have moved between ``/api/v1/...`` and unversioned paths
over time, so list and send calls try each candidate path in turn and only
fail once all of them have.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field

from pdfier.client.backend import BackendClient, bearer, parse_json, raise_for_backend
from pdfier.errors import BackendError, PdfierError
from pdfier.session.credentials import CredentialStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHAT_FILE_PREFIX = re.compile(r"^chat_\d+_")


class Conversation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: Optional[str] = None
    collection_id: str
    title: str = ""
    created_at: Optional[str] = None
    last_active_at: Optional[str] = None


class DocumentItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    file_name: str
    uploaded_at: Optional[str] = None
    status: Optional[str] = None
    storage_path: Optional[str] = None
    url: Optional[str] = None


class MessageItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    conversation_id: Optional[str] = None
    timestamp: Optional[str] = None
    role: Optional[str] = None
    sender: Optional[str] = None
    content: Optional[str] = None
    text: Optional[str] = None
    message: Optional[str] = None

    @property
    def author(self) -> str:
        return self.role or self.sender or "unknown"

    @property
    def body(self) -> str:
        return self.content or self.text or self.message or ""


class RecentDocument(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    @property
    def display_name(self) -> str:
        return CHAT_FILE_PREFIX.sub("", self.name)


def as_list(data: Any) -> Optional[list]:
    """Accept either a bare list or ``{"data": [...]}``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"]
    return None


class ChatAPI:
    def __init__(self, backend: BackendClient, credentials: CredentialStore):
        self.backend = backend
        self.credentials = credentials

    def _headers(self) -> dict[str, str]:
        return bearer(self.credentials.get_access())

    async def _try_candidates(
        self,
        label: str,
        method: str,
        paths: List[str],
        parse: Callable[[httpx.Response], Optional[T]],
        **kwargs: Any,
    ) -> T:
        last_error: Optional[Exception] = None
        for path in paths:
            logger.debug("[%s] trying %s", label, path)
            try:
                response = await self.backend.request(
                    method, path, headers=self._headers(), **kwargs
                )
            except httpx.HTTPError as e:
                last_error = PdfierError(f"Network error calling {path}: {e}")
                continue
            if not response.is_success:
                last_error = BackendError(
                    response.status_code, f"Failed {path}: {response.status_code} {response.text}"
                )
                logger.debug("[%s] failed: %s", label, response.status_code)
                continue
            result = parse(response)
            if result is None:
                last_error = PdfierError(f"Unexpected response shape from {path}")
                continue
            logger.debug("[%s] success from %s", label, path)
            return result
        raise last_error or PdfierError(f"Failed to {label}")

    async def fetch_conversations(self, collection_id: str) -> List[Conversation]:
        response = await self.backend.get(
            "/api/v1/conversations",
            headers=self._headers(),
            params={"collection_id": collection_id},
        )
        if not response.is_success:
            raise BackendError(
                response.status_code, f"Failed to fetch conversations: {response.text}"
            )
        items = as_list(parse_json(response)) or []
        return [Conversation.model_validate(item) for item in items]

    async def create_conversation(self, collection_id: str, title: str) -> dict:
        response = await self.backend.post(
            "/api/v1/conversations/",
            headers=self._headers(),
            params={"collection_id": collection_id, "title": title},
            json={},
        )
        raise_for_backend(response, "Failed to create conversation")
        return parse_json(response)

    async def fetch_documents(self, collection_id: str) -> List[DocumentItem]:
        params = {"collection_id": collection_id}

        def parse(response: httpx.Response) -> Optional[List[DocumentItem]]:
            items = as_list(parse_json(response))
            if items is None:
                return None
            return [DocumentItem.model_validate(item) for item in items]

        return await self._try_candidates(
            "documents", "GET", ["/api/v1/documents", "/documents"], parse, params=params
        )

    async def upload_document(self, path: str | Path, collection_id: str) -> dict:
        path = Path(path)
        if not path.is_file():
            raise PdfierError(f"No file provided: {path}")
        files = [("file", (path.name, path.read_bytes(), "application/pdf"))]
        return await self._try_candidates(
            "upload",
            "POST",
            ["/api/v1/documents/upload"],
            parse_json,
            params={"collection_id": collection_id},
            files=files,
        )

    async def fetch_messages(self, conversation_id: str) -> List[MessageItem]:
        params = {"conversation_id": conversation_id}

        def parse(response: httpx.Response) -> Optional[List[MessageItem]]:
            items = as_list(parse_json(response))
            if items is None:
                return None
            return [MessageItem.model_validate(item) for item in items]

        return await self._try_candidates(
            "messages",
            "GET",
            ["/api/v1/messages", "/messages", "/"],
            parse,
            params=params,
        )

    async def send_chat(
        self,
        query: str,
        collection_id: str,
        conversation_id: Optional[str] = None,
    ) -> dict:
        if not query or not collection_id:
            raise PdfierError("Missing query or collection_id")
        payload = {
            "query": query,
            "collection_id": collection_id,
            "conversation_id": conversation_id,
        }
        return await self._try_candidates(
            "chat", "POST", ["/api/v1/chat", "/chat"], parse_json, json=payload
        )

    async def recent_documents(self, limit: int = 3) -> List[RecentDocument]:
        """Newest documents across all collections, for the dashboard."""
        response = await self.backend.get(
            "/api/v1/documents/list-user-files", headers=self._headers()
        )
        raise_for_backend(response, "Failed to fetch documents")
        files = parse_json(response).get("files") or []
        documents = [RecentDocument.model_validate(item) for item in files]
        documents.sort(
            key=lambda d: d.created_at.timestamp() if d.created_at else 0.0,
            reverse=True,
        )
        return documents[:limit]
