"""Outbound webhook requests and reply normalization.

A webhook may answer with a single JSON object or with a one-element array
wrapping that object (n8n does the latter). Both shapes are resolved here into
a ``NormalizedReply`` so nothing downstream handles raw JSON.
"""

import json
import logging
import re
from dataclasses import dataclass

import httpx

from .codec import is_eligible
from .config import get_request_timeout
from .core import Attachment, Endpoint, RawFile
from .errors import TransportFailure

logger = logging.getLogger(__name__)

_DATA_KEY = re.compile(r"^data\d+$")


@dataclass
class ObjectReply:
    """Reply body was a JSON object."""

    payload: dict


@dataclass
class ArrayReply:
    """Reply body was a JSON array; only its first object is meaningful."""

    items: list

    @property
    def payload(self) -> dict:
        return self.items[0]


ReplyShape = ObjectReply | ArrayReply


@dataclass
class NormalizedReply:
    """What a webhook said, in the shape the transcript stores."""

    content: str
    attachments: dict[str, Attachment] | None = None


def classify_reply(body) -> ReplyShape:
    """Resolve a decoded JSON body into one of the accepted reply shapes."""
    if isinstance(body, dict):
        return ObjectReply(body)
    if isinstance(body, list):
        if not body or not isinstance(body[0], dict):
            raise TransportFailure("Webhook returned an unexpected reply shape")
        return ArrayReply(body)
    raise TransportFailure("Webhook returned an unexpected reply shape")


def _display_text(payload: dict) -> str:
    for key in ("message", "response"):
        value = payload.get(key)
        if value:
            return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return json.dumps(payload, ensure_ascii=False)


def _reply_attachments(payload: dict) -> dict[str, Attachment] | None:
    data = payload.get("data")
    if not data:
        return None

    if isinstance(data, dict) and all(_DATA_KEY.match(str(k)) for k in data):
        keyed = data
    else:
        # Single file; wrap so storage and rendering see one shape
        keyed = {"data0": data}

    return {key: Attachment.from_dict(value) for key, value in keyed.items()}


def normalize_reply(body) -> NormalizedReply:
    """Extract display text and attachments from a decoded reply body."""
    payload = classify_reply(body).payload
    return NormalizedReply(
        content=_display_text(payload),
        attachments=_reply_attachments(payload),
    )


class WebhookTransport:
    """Sends one message to an endpoint and returns the normalized reply.

    A single attempt is made per call. Any failure is raised as
    ``TransportFailure`` and is final for that send.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else get_request_timeout()
        )

    async def __aenter__(self) -> "WebhookTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def build_request(
        self,
        endpoint: Endpoint,
        message: str,
        conversation_id: int | None,
        files: list[RawFile] | None = None,
    ) -> httpx.Request:
        """Build the POST for an endpoint, as JSON or multipart."""
        headers = {"Authorization": f"Bearer {endpoint.credential}"}
        accepted = [f for f in files or [] if is_eligible(f)]

        if accepted:
            logger.debug("Sending %d file(s) to %s as multipart", len(accepted), endpoint.name)
            return self._client.build_request(
                "POST",
                endpoint.url,
                headers=headers,
                data={
                    "message": message,
                    "UUID": "" if conversation_id is None else str(conversation_id),
                },
                files=[("data", (f.name, f.content, f.content_type)) for f in accepted],
            )

        logger.debug("Sending text message to %s as JSON", endpoint.name)
        headers["Content-Type"] = "application/json"
        return self._client.build_request(
            "POST",
            endpoint.url,
            headers=headers,
            content=json.dumps({"message": message, "UUID": conversation_id}),
        )

    async def send(
        self,
        endpoint: Endpoint,
        message: str,
        conversation_id: int | None,
        files: list[RawFile] | None = None,
    ) -> NormalizedReply:
        request = self.build_request(endpoint, message, conversation_id, files)

        try:
            response = await self._client.send(request)
        except httpx.HTTPError as e:
            raise TransportFailure(f"Webhook request failed: {e}", reason=str(e)) from e

        if not response.is_success:
            raise TransportFailure(
                f"Webhook request failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportFailure(
                "Webhook returned invalid JSON",
                status_code=response.status_code,
                reason=str(e),
            ) from e

        return normalize_reply(body)
