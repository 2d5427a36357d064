"""Transcript store backends and a factory to pick one."""

from ..store import TranscriptStore
from .http import HTTPTranscriptStore
from .sqlite import SQLiteTranscriptStore


def open_store(location: str | None = None) -> TranscriptStore:
    """Return a store for a location.

    An ``http://`` or ``https://`` URL selects the REST facade client; anything
    else is treated as a SQLite file path (None means the configured default).
    """
    if location and location.startswith(("http://", "https://")):
        return HTTPTranscriptStore(base_url=location)
    return SQLiteTranscriptStore(location)
