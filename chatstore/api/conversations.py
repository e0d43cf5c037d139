"""REST API for conversation history management."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from chatstore.core.errors import ChatStoreError, ConflictError, NotFoundError, StorageError, ValidationError
from chatstore.services.conversation_store import ConversationStore, get_store

router = APIRouter()
logger = logging.getLogger(__name__)


class ConversationCreate(BaseModel):
    title: Optional[str] = None


class ConversationUpdate(BaseModel):
    title: Optional[str] = None


class MessageCreate(BaseModel):
    role: str
    content: str


def _http_error(exc: ChatStoreError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        logger.debug(f"Conversation {exc.conversation_id} not found")
        return HTTPException(status_code=404, detail="Conversation not found")
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=503, detail="Storage unavailable")
    return HTTPException(status_code=500, detail=str(exc))


@router.get("/")
def list_conversations(store: ConversationStore = Depends(get_store)):
    try:
        conversations = store.get_all_conversations()
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    return [c.model_dump(mode="json") for c in conversations]


@router.post("/", status_code=201)
def create_conversation(body: ConversationCreate, store: ConversationStore = Depends(get_store)):
    try:
        conversation_id = store.create_conversation(body.title)
        conversation = store.get_conversation(conversation_id)
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    return conversation.model_dump(mode="json")


@router.delete("/")
def clear_conversations(store: ConversationStore = Depends(get_store)):
    try:
        store.clear()
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    logger.debug("Cleared all conversations")
    return {"status": "cleared"}


@router.get("/{conversation_id}")
def get_conversation(conversation_id: str, store: ConversationStore = Depends(get_store)):
    try:
        conversation = store.get_conversation(conversation_id)
        messages = store.get_messages_for_conversation(conversation_id)
    except ChatStoreError as exc:
        raise _http_error(exc) from exc

    data = conversation.model_dump(mode="json")
    data["messages"] = [m.model_dump(mode="json") for m in messages]
    return data


@router.patch("/{conversation_id}")
def rename_conversation(
    conversation_id: str, body: ConversationUpdate, store: ConversationStore = Depends(get_store)
):
    try:
        conversation = store.rename_conversation(conversation_id, body.title)
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    return conversation.model_dump(mode="json")


@router.delete("/{conversation_id}")
def delete_conversation(conversation_id: str, store: ConversationStore = Depends(get_store)):
    try:
        store.delete_conversation(conversation_id)
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    logger.debug(f"Deleted conversation {conversation_id}")
    return {"status": "deleted"}


@router.get("/{conversation_id}/messages")
def list_messages(
    conversation_id: str, limit: Optional[int] = Query(None, ge=0), store: ConversationStore = Depends(get_store)
):
    try:
        messages = store.get_messages_for_conversation(conversation_id, limit=limit)
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    return [m.model_dump(mode="json") for m in messages]


@router.post("/{conversation_id}/messages", status_code=201)
def add_message(conversation_id: str, body: MessageCreate, store: ConversationStore = Depends(get_store)):
    try:
        message_id = store.add_message(conversation_id, body.role, body.content)
    except ChatStoreError as exc:
        raise _http_error(exc) from exc
    return {"id": message_id, "conversation_id": conversation_id}
