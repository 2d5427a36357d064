"""FastAPI REST facade over the transcript store."""

import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel

from . import __version__
from .backends.sqlite import SQLiteTranscriptStore
from .codec import decode
from .core import attachments_from_dict, attachments_to_dict
from .errors import DuplicateName, MalformedPayload, NotFound, ValidationError
from .store import TranscriptStore

logger = logging.getLogger(__name__)

app = FastAPI(title="webhook-chat", version=__version__)

# Store (opened on first request)
_store: TranscriptStore | None = None


def _get_store() -> TranscriptStore:
    """Lazily open and cache the transcript store."""
    global _store
    if _store is None:
        _store = SQLiteTranscriptStore()
        logger.info("Using transcript database %s", _store.db_path)
    return _store


# ── Request bodies ───────────────────────────────────────────────


class EndpointCreate(BaseModel):
    name: str = ""
    url: str = ""
    credential: str = ""


class ConversationCreate(BaseModel):
    endpoint_id: int


class ConversationRename(BaseModel):
    name: str


class MessageCreate(BaseModel):
    """Message to append; required fields are checked by the route."""

    conversation_id: Optional[int] = None
    content: Optional[str] = None
    is_user: Optional[bool] = None
    timestamp: Optional[datetime] = None
    data: Optional[dict] = None


# ── Serialization ────────────────────────────────────────────────


def _endpoint_to_dict(endpoint, include_credential: bool = False) -> dict:
    data = {
        "id": endpoint.id,
        "name": endpoint.name,
        "url": endpoint.url,
        "created": endpoint.created.isoformat() if endpoint.created else None,
    }
    if include_credential:
        data["credential"] = endpoint.credential
    return data


def _conversation_to_dict(conversation) -> dict:
    return {
        "id": conversation.id,
        "endpoint_id": conversation.endpoint_id,
        "endpoint_name": conversation.endpoint_name,
        "name": conversation.name,
        "created": conversation.created.isoformat() if conversation.created else None,
    }


def _message_to_dict(msg) -> dict:
    return {
        "id": msg.id,
        "conversation_id": msg.conversation_id,
        "content": msg.content,
        "is_user": msg.is_user,
        "timestamp": msg.timestamp.isoformat() if msg.timestamp else None,
        "data": attachments_to_dict(msg.attachments),
    }


# ── Endpoints ────────────────────────────────────────────────────


@app.get("/api/endpoints")
async def list_endpoints():
    """Return all endpoints, without credentials."""
    return [_endpoint_to_dict(e) for e in _get_store().list_endpoints()]


@app.post("/api/endpoints", status_code=201)
async def create_endpoint(request: EndpointCreate):
    try:
        endpoint_id = _get_store().create_endpoint(request.name, request.url, request.credential)
    except DuplicateName as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": endpoint_id}


@app.get("/api/endpoints/{endpoint_id}")
async def get_endpoint(endpoint_id: int):
    endpoint = _get_store().get_endpoint(endpoint_id)
    if endpoint is None:
        raise HTTPException(status_code=404, detail="Endpoint not found")
    return _endpoint_to_dict(endpoint, include_credential=True)


@app.delete("/api/endpoints/{endpoint_id}", status_code=204)
async def delete_endpoint(endpoint_id: int):
    """Delete an endpoint along with its conversations."""
    try:
        _get_store().delete_endpoint(endpoint_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


# ── Conversations ────────────────────────────────────────────────


@app.get("/api/conversations")
async def list_conversations():
    """Return all conversations, newest first."""
    return [_conversation_to_dict(c) for c in _get_store().list_conversations()]


@app.post("/api/conversations", status_code=201)
async def create_conversation(request: ConversationCreate):
    try:
        conversation_id = _get_store().create_conversation(request.endpoint_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"id": conversation_id}


@app.get("/api/conversations/{conversation_id}")
async def get_conversation(conversation_id: int):
    conversation = _get_store().get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return _conversation_to_dict(conversation)


@app.patch("/api/conversations/{conversation_id}")
async def rename_conversation(conversation_id: int, request: ConversationRename):
    try:
        _get_store().rename_conversation(conversation_id, request.name)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"id": conversation_id, "name": request.name}


@app.delete("/api/conversations/{conversation_id}", status_code=204)
async def delete_conversation(conversation_id: int):
    """Delete a conversation along with its messages."""
    try:
        _get_store().delete_conversation(conversation_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


@app.get("/api/conversations/{conversation_id}/messages")
async def list_messages(conversation_id: int):
    """Return a conversation's messages in timestamp order."""
    return [_message_to_dict(m) for m in _get_store().list_messages(conversation_id)]


# ── Messages ─────────────────────────────────────────────────────


@app.post("/api/messages", status_code=201)
async def append_message(request: MessageCreate):
    if request.conversation_id is None or request.content is None or request.is_user is None:
        raise HTTPException(status_code=400, detail="Missing required fields")

    try:
        message_id = _get_store().append_message(
            request.conversation_id,
            request.content,
            request.is_user,
            timestamp=request.timestamp,
            attachments=attachments_from_dict(request.data),
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"id": message_id}


@app.get("/api/messages/{message_id}")
async def get_message(message_id: int):
    message = _get_store().get_message(message_id)
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return _message_to_dict(message)


@app.get("/api/messages/{message_id}/attachments/{key}")
async def download_attachment(message_id: int, key: str):
    """Return an attachment's decoded bytes as a file download."""
    message = _get_store().get_message(message_id)
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")

    attachment = (message.attachments or {}).get(key)
    if attachment is None:
        raise HTTPException(status_code=404, detail=f"No attachment {key!r} on message {message_id}")

    try:
        content = decode(attachment)
    except MalformedPayload as e:
        logger.warning("Cannot decode %s on message %d: %s", key, message_id, e)
        raise HTTPException(status_code=422, detail=str(e))

    filename = attachment.file_name or key
    # Header values must be latin-1; the real name goes in filename*
    ascii_name = "".join(c for c in filename if c.isascii() and (c.isalnum() or c in "-_. ")).strip() or key
    return Response(
        content=content,
        media_type=attachment.mime_type or "application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}",
        },
    )
