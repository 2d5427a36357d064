"""Abstract base class for transcript stores."""

from abc import ABC, abstractmethod
from datetime import datetime
from urllib.parse import urlparse

from .core import Attachment, Conversation, Endpoint, Message
from .errors import ValidationError


def validate_endpoint(name: str, url: str, credential: str) -> None:
    """Raise ValidationError unless the endpoint fields are usable."""
    if not name or not name.strip():
        raise ValidationError("Name is required")
    if not url or not url.strip():
        raise ValidationError("URL is required")
    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Invalid URL format: {url}")
    if not credential or not credential.strip():
        raise ValidationError("Credential is required")


class TranscriptStore(ABC):
    """Durable storage for endpoints, conversations and messages.

    Backends (SQLite, the REST facade client) implement this interface. Ids
    are assigned by the store. Deleting an endpoint removes its conversations,
    and deleting a conversation removes its messages.
    """

    # ── Endpoints ────────────────────────────────────────────────────

    @abstractmethod
    def create_endpoint(self, name: str, url: str, credential: str) -> int:
        """Register an endpoint. Raises DuplicateName if the name is taken."""
        ...

    @abstractmethod
    def list_endpoints(self) -> list[Endpoint]:
        """Return all endpoints, with credentials left empty."""
        ...

    @abstractmethod
    def get_endpoint(self, endpoint_id: int) -> Endpoint | None:
        ...

    @abstractmethod
    def delete_endpoint(self, endpoint_id: int) -> None:
        ...

    # ── Conversations ────────────────────────────────────────────────

    @abstractmethod
    def create_conversation(self, endpoint_id: int) -> int:
        """Start a conversation, snapshotting the endpoint's current name."""
        ...

    @abstractmethod
    def list_conversations(self) -> list[Conversation]:
        """Return all conversations, newest first."""
        ...

    @abstractmethod
    def get_conversation(self, conversation_id: int) -> Conversation | None:
        ...

    @abstractmethod
    def delete_conversation(self, conversation_id: int) -> None:
        ...

    @abstractmethod
    def rename_conversation(self, conversation_id: int, name: str) -> None:
        ...

    # ── Messages ─────────────────────────────────────────────────────

    @abstractmethod
    def append_message(
        self,
        conversation_id: int,
        content: str,
        is_user: bool,
        timestamp: datetime | None = None,
        attachments: dict[str, Attachment] | None = None,
    ) -> int:
        ...

    @abstractmethod
    def list_messages(self, conversation_id: int) -> list[Message]:
        """Return a conversation's messages, oldest first."""
        ...

    @abstractmethod
    def get_message(self, message_id: int) -> Message | None:
        ...

    def has_no_messages(self, conversation_id: int) -> bool:
        return len(self.list_messages(conversation_id)) == 0

    def close(self) -> None:
        """Release any underlying connection."""
