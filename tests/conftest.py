"""Shared test fixtures for webhook-chat."""

import json

import httpx
import pytest

from webhook_chat.backends.sqlite import SQLiteTranscriptStore
from webhook_chat.core import RawFile
from webhook_chat.transport import WebhookTransport

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


@pytest.fixture
def store(tmp_path):
    """A SQLite transcript store in a temp directory."""
    s = SQLiteTranscriptStore(tmp_path / "transcripts.db")
    yield s
    s.close()


@pytest.fixture
def demo_endpoint_id(store):
    return store.create_endpoint("demo", "https://example.test/hook", "tok")


@pytest.fixture
def conversation_id(store, demo_endpoint_id):
    return store.create_conversation(demo_endpoint_id)


@pytest.fixture
def png_file():
    return RawFile(name="pixel.png", content_type="image/png", content=PNG_BYTES)


@pytest.fixture
def text_file():
    return RawFile(name="notes.txt", content_type="text/plain", content=b"just some notes\n")


class FakeWebhook:
    """Records requests and answers with a canned reply."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status = 200
        self.body: bytes = json.dumps({"message": "ok"}).encode()

    def reply(self, payload, status: int = 200) -> None:
        self.status = status
        self.body = json.dumps(payload).encode()

    def reply_raw(self, body: bytes, status: int = 200) -> None:
        self.status = status
        self.body = body

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        return httpx.Response(self.status, content=self.body, headers={"Content-Type": "application/json"})

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def webhook():
    return FakeWebhook()


@pytest.fixture
def transport(webhook):
    """A WebhookTransport whose requests go to the fake webhook."""
    return WebhookTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(webhook)))
