"""The conversation session: one user's view of one active chat.

A session holds the visible transcript and the selected endpoint and
conversation. It drives a send: encode the attachments, show and store the
user turn, call the webhook, then show and store the reply. It is owned by
the caller (a CLI run, a UI handler), and nothing about it is global.

Only one send may be in flight at a time. A second ``send`` issued before
the first resolves is rejected with ``SessionBusy`` and leaves the transcript
untouched.

During a send, store calls run in a worker thread so that a blocking
backend (the REST client) does not stall the event loop.
"""

import asyncio
import logging
from datetime import datetime, timezone

from .codec import encode_all
from .config import GREETING
from .core import Endpoint, Message, RawFile
from .errors import NoActiveEndpoint, NotFound, SessionBusy
from .store import TranscriptStore
from .transport import WebhookTransport

logger = logging.getLogger(__name__)

NAME_PREVIEW_LENGTH = 20


def conversation_name_from(text: str) -> str:
    """Return the display name a conversation takes from its first message."""
    if len(text) > NAME_PREVIEW_LENGTH:
        return text[:NAME_PREVIEW_LENGTH] + "..."
    return text


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationSession:
    """In-memory state and operations for the active conversation."""

    def __init__(self, store: TranscriptStore, transport: WebhookTransport):
        self.store = store
        self.transport = transport
        self.endpoint: Endpoint | None = None
        self.conversation_id: int | None = None
        self.messages: list[Message] = []
        self.busy = False
        self.error: str | None = None

    def _reset(self) -> None:
        self.endpoint = None
        self.conversation_id = None
        self.messages = []

    def activate(self, endpoint_id: int | None) -> None:
        """Select an endpoint, or show the placeholder when given None."""
        self.error = None

        if endpoint_id is None:
            self._reset()
            self.messages = [Message(content=GREETING, is_user=False, timestamp=_now())]
            return

        endpoint = self.store.get_endpoint(endpoint_id)
        if endpoint is None:
            self._reset()
            self.error = f"Endpoint {endpoint_id} not found"
            logger.warning("Cannot activate endpoint %d: not found", endpoint_id)
            raise NotFound(self.error)

        self.endpoint = endpoint
        self.messages = []

    def start(self) -> int:
        """Create a conversation for the active endpoint and make it current."""
        if self.endpoint is None:
            raise NoActiveEndpoint("No active endpoint")

        conversation_id = self.store.create_conversation(self.endpoint.id)
        self.conversation_id = conversation_id
        self.messages = []
        return conversation_id

    def select(self, endpoint_id: int) -> int:
        """Activate an endpoint and start a new conversation with it.

        On any failure the session falls back to the placeholder view and
        the error is re-raised.
        """
        try:
            self.activate(endpoint_id)
            return self.start()
        except Exception as e:
            logger.error("Failed to start a conversation with endpoint %s: %s", endpoint_id, e)
            self.activate(None)
            self.error = str(e)
            raise

    def open(self, conversation_id: int) -> None:
        """Reopen a stored conversation, replacing the visible transcript."""
        self.error = None

        conversation = self.store.get_conversation(conversation_id)
        endpoint = self.store.get_endpoint(conversation.endpoint_id) if conversation else None
        if endpoint is None:
            self._reset()
            self.error = f"Conversation {conversation_id} not found"
            logger.warning("Cannot open conversation %d: conversation or endpoint missing", conversation_id)
            raise NotFound(self.error)

        self.endpoint = endpoint
        self.messages = self.store.list_messages(conversation_id)
        self.conversation_id = conversation_id

    def clear(self) -> None:
        """Empty the visible transcript. Stored messages are kept."""
        self.messages = []
        self.error = None

    async def send(self, text: str, files: list[RawFile] | None = None) -> Message:
        """Send a message to the active endpoint and record the exchange.

        Failures after the send has started do not propagate. They are shown
        as an ``Error: ...`` entry in the transcript, and that entry is
        returned. Steps completed before the failure are not undone.
        """
        if self.endpoint is None:
            raise NoActiveEndpoint("No active endpoint")
        if self.busy:
            raise SessionBusy("A message is already being sent")

        self.busy = True
        self.error = None
        endpoint = self.endpoint
        conversation_id = self.conversation_id
        try:
            attachments = encode_all(files)

            user_message = Message(
                content=text,
                is_user=True,
                timestamp=_now(),
                conversation_id=conversation_id,
                attachments=attachments,
            )
            self.messages.append(user_message)

            if conversation_id is not None:
                is_first = await asyncio.to_thread(self.store.has_no_messages, conversation_id)
                user_message.id = await asyncio.to_thread(
                    self.store.append_message,
                    conversation_id, text, True, user_message.timestamp, attachments,
                )
                if is_first:
                    await asyncio.to_thread(
                        self.store.rename_conversation, conversation_id, conversation_name_from(text)
                    )

            reply = await self.transport.send(endpoint, text, conversation_id, files)

            reply_message = Message(
                content=reply.content,
                is_user=False,
                timestamp=_now(),
                conversation_id=conversation_id,
                attachments=reply.attachments,
            )
            self.messages.append(reply_message)

            if conversation_id is not None:
                reply_message.id = await asyncio.to_thread(
                    self.store.append_message,
                    conversation_id, reply.content, False, reply_message.timestamp, reply.attachments,
                )
            return reply_message
        except Exception as e:
            logger.error("Send to %s failed: %s", endpoint.name, e, exc_info=True)
            self.error = str(e)
            error_message = Message(content=f"Error: {e}", is_user=False, timestamp=_now())
            self.messages.append(error_message)
            return error_message
        finally:
            self.busy = False
