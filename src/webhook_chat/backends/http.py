"""Transcript store that talks to a running webhook-chat REST facade."""

import logging
from datetime import datetime

import httpx

from ..core import Attachment, Conversation, Endpoint, Message, attachments_from_dict, attachments_to_dict
from ..errors import DuplicateName, NotFound, ValidationError
from ..store import TranscriptStore, validate_endpoint

logger = logging.getLogger(__name__)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("detail", response.reason_phrase))
    except ValueError:
        return response.reason_phrase


def _check(response: httpx.Response) -> httpx.Response:
    """Map facade error statuses back onto the store's exceptions."""
    if response.status_code == 404:
        raise NotFound(_detail(response))
    if response.status_code == 409:
        raise DuplicateName(_detail(response))
    if response.status_code == 400:
        raise ValidationError(_detail(response))
    response.raise_for_status()
    return response


class HTTPTranscriptStore(TranscriptStore):
    """Store client for the ``/api`` routes served by ``webhook_chat.server``.

    Pass either a base URL or a ready ``httpx.Client`` (e.g. a FastAPI
    ``TestClient``) whose base URL points at the facade.
    """

    def __init__(self, base_url: str = "http://127.0.0.1:8080", client: httpx.Client | None = None):
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ── Endpoints ────────────────────────────────────────────────────

    def create_endpoint(self, name: str, url: str, credential: str) -> int:
        validate_endpoint(name, url, credential)
        resp = _check(self._client.post(
            "/api/endpoints", json={"name": name, "url": url, "credential": credential}
        ))
        return resp.json()["id"]

    def list_endpoints(self) -> list[Endpoint]:
        resp = _check(self._client.get("/api/endpoints"))
        return [
            Endpoint(id=e["id"], name=e["name"], url=e["url"], created=_parse_ts(e.get("created")))
            for e in resp.json()
        ]

    def get_endpoint(self, endpoint_id: int) -> Endpoint | None:
        try:
            resp = _check(self._client.get(f"/api/endpoints/{endpoint_id}"))
        except NotFound:
            return None
        e = resp.json()
        return Endpoint(
            id=e["id"],
            name=e["name"],
            url=e["url"],
            credential=e.get("credential", ""),
            created=_parse_ts(e.get("created")),
        )

    def delete_endpoint(self, endpoint_id: int) -> None:
        _check(self._client.delete(f"/api/endpoints/{endpoint_id}"))

    # ── Conversations ────────────────────────────────────────────────

    @staticmethod
    def _to_conversation(c: dict) -> Conversation:
        return Conversation(
            id=c["id"],
            endpoint_id=c["endpoint_id"],
            endpoint_name=c["endpoint_name"],
            name=c["name"],
            created=_parse_ts(c.get("created")),
        )

    def create_conversation(self, endpoint_id: int) -> int:
        resp = _check(self._client.post("/api/conversations", json={"endpoint_id": endpoint_id}))
        return resp.json()["id"]

    def list_conversations(self) -> list[Conversation]:
        resp = _check(self._client.get("/api/conversations"))
        return [self._to_conversation(c) for c in resp.json()]

    def get_conversation(self, conversation_id: int) -> Conversation | None:
        try:
            resp = _check(self._client.get(f"/api/conversations/{conversation_id}"))
        except NotFound:
            return None
        return self._to_conversation(resp.json())

    def delete_conversation(self, conversation_id: int) -> None:
        _check(self._client.delete(f"/api/conversations/{conversation_id}"))

    def rename_conversation(self, conversation_id: int, name: str) -> None:
        _check(self._client.patch(f"/api/conversations/{conversation_id}", json={"name": name}))

    # ── Messages ─────────────────────────────────────────────────────

    @staticmethod
    def _to_message(m: dict) -> Message:
        return Message(
            id=m["id"],
            conversation_id=m["conversation_id"],
            content=m["content"],
            is_user=bool(m["is_user"]),
            timestamp=_parse_ts(m["timestamp"]),
            attachments=attachments_from_dict(m.get("data")),
        )

    def append_message(
        self,
        conversation_id: int,
        content: str,
        is_user: bool,
        timestamp: datetime | None = None,
        attachments: dict[str, Attachment] | None = None,
    ) -> int:
        body = {
            "conversation_id": conversation_id,
            "content": content,
            "is_user": is_user,
            "timestamp": timestamp.isoformat() if timestamp else None,
            "data": attachments_to_dict(attachments),
        }
        resp = _check(self._client.post("/api/messages", json=body))
        return resp.json()["id"]

    def list_messages(self, conversation_id: int) -> list[Message]:
        resp = _check(self._client.get(f"/api/conversations/{conversation_id}/messages"))
        return [self._to_message(m) for m in resp.json()]

    def get_message(self, message_id: int) -> Message | None:
        try:
            resp = _check(self._client.get(f"/api/messages/{message_id}"))
        except NotFound:
            return None
        return self._to_message(resp.json())
