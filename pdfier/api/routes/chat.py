from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pdfier.api.deps import get_services
from pdfier.factory import Services
from pdfier.session.context import require_login

router = APIRouter(tags=["chat"])


class CreateConversationRequest(BaseModel):
    collection_id: str
    title: str


class UploadDocumentRequest(BaseModel):
    file_path: str
    collection_id: str


class ChatRequest(BaseModel):
    query: str
    collection_id: str
    conversation_id: Optional[str] = None


def get_chat_services(services: Services = Depends(get_services)) -> Services:
    """Chat pages are only available to signed-in users."""
    require_login(services.session)
    return services


@router.get("/conversations")
async def list_conversations(
    collection_id: str, services: Services = Depends(get_chat_services)
):
    conversations = await services.chat.fetch_conversations(collection_id)
    return [c.model_dump() for c in conversations]


@router.post("/conversations")
async def create_conversation(
    request: CreateConversationRequest, services: Services = Depends(get_chat_services)
):
    return await services.chat.create_conversation(request.collection_id, request.title)


@router.get("/documents")
async def list_documents(collection_id: str, services: Services = Depends(get_chat_services)):
    documents = await services.chat.fetch_documents(collection_id)
    return [d.model_dump() for d in documents]


@router.get("/documents/recent")
async def recent_documents(limit: int = 3, services: Services = Depends(get_chat_services)):
    documents = await services.chat.recent_documents(limit)
    return [
        {**d.model_dump(mode="json", by_alias=True), "displayName": d.display_name}
        for d in documents
    ]


@router.post("/documents/upload")
async def upload_document(
    request: UploadDocumentRequest, services: Services = Depends(get_chat_services)
):
    return await services.chat.upload_document(request.file_path, request.collection_id)


@router.get("/messages")
async def list_messages(conversation_id: str, services: Services = Depends(get_chat_services)):
    messages = await services.chat.fetch_messages(conversation_id)
    return [m.model_dump() for m in messages]


@router.post("/chat")
async def chat(request: ChatRequest, services: Services = Depends(get_chat_services)):
    return await services.chat.send_chat(
        request.query, request.collection_id, request.conversation_id
    )
