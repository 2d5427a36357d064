"""Core data models for webhook-chat."""

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass
class Endpoint:
    """A registered webhook target."""

    id: int
    name: str
    url: str
    credential: str = ""  # empty when listed; only get_endpoint returns it
    created: Optional[datetime] = None


@dataclass
class Conversation:
    """A chat session bound to one endpoint at creation time."""

    id: int
    endpoint_id: int
    endpoint_name: str  # snapshot of the endpoint name, never refreshed
    name: str  # display name, starts as endpoint_name
    created: Optional[datetime] = None


@dataclass
class Attachment:
    """Inline file data carried by a message, in its portable form."""

    mime_type: str
    file_type: str  # "image" | "file"
    file_extension: str
    data: str  # base64
    file_name: str
    file_size: str  # e.g. "12.3 KB"

    def to_dict(self) -> dict:
        return {
            "mimeType": self.mime_type,
            "fileType": self.file_type,
            "fileExtension": self.file_extension,
            "data": self.data,
            "fileName": self.file_name,
            "fileSize": self.file_size,
        }

    @classmethod
    def from_dict(cls, raw) -> "Attachment":
        """Build an attachment from a stored or webhook-supplied value.

        Webhooks are free to omit fields, so anything missing becomes an empty
        string. A bare string is taken to be the base64 payload itself.
        """
        if not isinstance(raw, dict):
            return cls(
                mime_type="application/octet-stream",
                file_type="file",
                file_extension="",
                data=str(raw),
                file_name="",
                file_size="",
            )
        return cls(
            mime_type=str(raw.get("mimeType") or ""),
            file_type=str(raw.get("fileType") or ""),
            file_extension=str(raw.get("fileExtension") or ""),
            data=str(raw.get("data") or ""),
            file_name=str(raw.get("fileName") or ""),
            file_size=str(raw.get("fileSize") or ""),
        )


@dataclass
class Message:
    """A single turn within a conversation."""

    content: str
    is_user: bool
    timestamp: datetime
    id: Optional[int] = None  # None for display-only entries
    conversation_id: Optional[int] = None
    attachments: Optional[dict[str, Attachment]] = None  # keys "data0", "data1", ...


@dataclass
class RawFile:
    """A local file picked for sending, before any encoding."""

    name: str
    content_type: str
    content: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Path) -> "RawFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            content=path.read_bytes(),
        )


def attachments_to_dict(attachments: Optional[dict[str, Attachment]]) -> Optional[dict]:
    """Serialize an attachment set, keeping None distinct from empty."""
    if attachments is None:
        return None
    return {key: att.to_dict() for key, att in attachments.items()}


def attachments_from_dict(raw: Optional[dict]) -> Optional[dict[str, Attachment]]:
    if not raw:
        return None
    return {key: Attachment.from_dict(value) for key, value in raw.items()}
