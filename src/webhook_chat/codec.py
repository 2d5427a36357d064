"""Conversion between raw files and inline base64 attachments.

Only image files are encoded. Anything else is left out of the outgoing
attachment set so that payloads sent to a webhook stay bounded.
"""

import base64
import binascii
import logging

from .core import Attachment, RawFile
from .errors import MalformedPayload

logger = logging.getLogger(__name__)

IMAGE_PREFIX = "image/"


def is_eligible(raw: RawFile) -> bool:
    """Return True if a file is accepted into the attachment set."""
    return raw.content_type.startswith(IMAGE_PREFIX)


def file_extension(name: str) -> str:
    """Return the part after the last dot, or "" when there is none."""
    _, dot, ext = name.rpartition(".")
    return ext if dot else ""


def format_size(size: int) -> str:
    return f"{size / 1024:.1f} KB"


def encode(raw: RawFile) -> Attachment:
    """Encode one image file into its inline representation."""
    if not is_eligible(raw):
        raise ValueError(f"Not an image file: {raw.name} ({raw.content_type})")
    return Attachment(
        mime_type=raw.content_type,
        file_type="image",
        file_extension=file_extension(raw.name),
        data=base64.b64encode(raw.content).decode("ascii"),
        file_name=raw.name,
        file_size=format_size(raw.size),
    )


def encode_all(files: list[RawFile] | None) -> dict[str, Attachment] | None:
    """Encode the eligible files of a selection.

    Keys follow selection order (``data0``, ``data1``, ...), counted over the
    whole selection so a dropped file leaves a gap. Returns None rather than an
    empty dict when nothing was accepted.
    """
    if not files:
        return None

    attachments = {}
    for i, raw in enumerate(files):
        if not is_eligible(raw):
            logger.info("Skipping non-image attachment %s (%s)", raw.name, raw.content_type)
            continue
        attachments[f"data{i}"] = encode(raw)

    return attachments or None


def decode(attachment: Attachment) -> bytes:
    """Return the raw bytes behind an attachment's base64 payload.

    Line breaks (MIME-style wrapping at 76 columns) are ignored; any other
    character outside the base64 alphabet is rejected.
    """
    payload = "".join(attachment.data.split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedPayload(f"Invalid base64 payload for {attachment.file_name or 'attachment'}: {e}") from e
