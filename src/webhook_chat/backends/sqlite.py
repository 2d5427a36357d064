"""SQLite transcript store.

Cascading deletes are left to the schema's foreign keys, so the
connection always runs with ``PRAGMA foreign_keys = ON``.
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from ..config import get_database_path
from ..core import Attachment, Conversation, Endpoint, Message, attachments_from_dict, attachments_to_dict
from ..errors import DuplicateName, NotFound
from ..store import TranscriptStore, validate_endpoint

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS endpoints (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE,
    url TEXT NOT NULL,
    credential TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS conversations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    endpoint_id INTEGER NOT NULL REFERENCES endpoints (id) ON DELETE CASCADE,
    endpoint_name TEXT NOT NULL,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id INTEGER NOT NULL REFERENCES conversations (id) ON DELETE CASCADE,
    content TEXT NOT NULL,
    is_user INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    data TEXT
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages (conversation_id, timestamp);
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_text(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_text(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


class SQLiteTranscriptStore(TranscriptStore):
    """Transcript store backed by a local SQLite file."""

    def __init__(self, db_path: Path | str | None = None):
        self.db_path = Path(db_path) if db_path else get_database_path()
        self._connection: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Get or create the connection, creating the schema on first use."""
        if self._connection is None:
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.executescript(SCHEMA)
            logger.debug("Opened transcript database at %s", self.db_path)
        return self._connection

    def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None

    @contextmanager
    def cursor(self) -> Generator[sqlite3.Cursor, None, None]:
        """Cursor that commits on success and rolls back on error."""
        conn = self.connect()
        cur = conn.cursor()
        try:
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    # ── Endpoints ────────────────────────────────────────────────────

    def create_endpoint(self, name: str, url: str, credential: str) -> int:
        validate_endpoint(name, url, credential)
        name = name.strip()
        with self.cursor() as cur:
            cur.execute("SELECT 1 FROM endpoints WHERE name = ?", (name,))
            if cur.fetchone():
                raise DuplicateName(f"An endpoint named {name!r} already exists")
            try:
                cur.execute(
                    "INSERT INTO endpoints (name, url, credential, created_at) VALUES (?, ?, ?, ?)",
                    (name, url.strip(), credential, _to_text(_now())),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateName(f"An endpoint named {name!r} already exists") from e
            endpoint_id = cur.lastrowid
        logger.info("Registered endpoint %s (%d)", name, endpoint_id)
        return endpoint_id

    def list_endpoints(self) -> list[Endpoint]:
        with self.cursor() as cur:
            cur.execute("SELECT id, name, url, created_at FROM endpoints ORDER BY name")
            rows = cur.fetchall()
        return [
            Endpoint(id=r["id"], name=r["name"], url=r["url"], created=_from_text(r["created_at"]))
            for r in rows
        ]

    def get_endpoint(self, endpoint_id: int) -> Endpoint | None:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM endpoints WHERE id = ?", (endpoint_id,))
            row = cur.fetchone()
        if row is None:
            return None
        return Endpoint(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            credential=row["credential"],
            created=_from_text(row["created_at"]),
        )

    def delete_endpoint(self, endpoint_id: int) -> None:
        with self.cursor() as cur:
            cur.execute("DELETE FROM endpoints WHERE id = ?", (endpoint_id,))
            if cur.rowcount == 0:
                raise NotFound(f"Endpoint {endpoint_id} not found")
        logger.info("Deleted endpoint %d and its conversations", endpoint_id)

    # ── Conversations ────────────────────────────────────────────────

    def _row_to_conversation(self, row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            endpoint_id=row["endpoint_id"],
            endpoint_name=row["endpoint_name"],
            name=row["name"],
            created=_from_text(row["created_at"]),
        )

    def create_conversation(self, endpoint_id: int) -> int:
        with self.cursor() as cur:
            cur.execute("SELECT name FROM endpoints WHERE id = ?", (endpoint_id,))
            row = cur.fetchone()
            if row is None:
                raise NotFound(f"Endpoint {endpoint_id} not found")
            cur.execute(
                "INSERT INTO conversations (endpoint_id, endpoint_name, name, created_at) VALUES (?, ?, ?, ?)",
                (endpoint_id, row["name"], row["name"], _to_text(_now())),
            )
            conversation_id = cur.lastrowid
        logger.info("Started conversation %d with %s", conversation_id, row["name"])
        return conversation_id

    def list_conversations(self) -> list[Conversation]:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM conversations ORDER BY created_at DESC, id DESC")
            rows = cur.fetchall()
        return [self._row_to_conversation(r) for r in rows]

    def get_conversation(self, conversation_id: int) -> Conversation | None:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM conversations WHERE id = ?", (conversation_id,))
            row = cur.fetchone()
        return self._row_to_conversation(row) if row else None

    def delete_conversation(self, conversation_id: int) -> None:
        with self.cursor() as cur:
            cur.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            if cur.rowcount == 0:
                raise NotFound(f"Conversation {conversation_id} not found")

    def rename_conversation(self, conversation_id: int, name: str) -> None:
        with self.cursor() as cur:
            cur.execute("UPDATE conversations SET name = ? WHERE id = ?", (name, conversation_id))
            if cur.rowcount == 0:
                raise NotFound(f"Conversation {conversation_id} not found")
        logger.info("Renamed conversation %d to %r", conversation_id, name)

    # ── Messages ─────────────────────────────────────────────────────

    def _row_to_message(self, row: sqlite3.Row) -> Message:
        data = json.loads(row["data"]) if row["data"] else None
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            content=row["content"],
            is_user=bool(row["is_user"]),
            timestamp=_from_text(row["timestamp"]),
            attachments=attachments_from_dict(data),
        )

    def append_message(
        self,
        conversation_id: int,
        content: str,
        is_user: bool,
        timestamp: datetime | None = None,
        attachments: dict[str, Attachment] | None = None,
    ) -> int:
        data = attachments_to_dict(attachments)
        with self.cursor() as cur:
            cur.execute("SELECT 1 FROM conversations WHERE id = ?", (conversation_id,))
            if cur.fetchone() is None:
                raise NotFound(f"Conversation {conversation_id} not found")
            cur.execute(
                "INSERT INTO messages (conversation_id, content, is_user, timestamp, data) VALUES (?, ?, ?, ?, ?)",
                (
                    conversation_id,
                    content,
                    1 if is_user else 0,
                    _to_text(timestamp or _now()),
                    json.dumps(data) if data else None,
                ),
            )
            return cur.lastrowid

    def list_messages(self, conversation_id: int) -> list[Message]:
        with self.cursor() as cur:
            cur.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY timestamp, id",
                (conversation_id,),
            )
            rows = cur.fetchall()
        return [self._row_to_message(r) for r in rows]

    def get_message(self, message_id: int) -> Message | None:
        with self.cursor() as cur:
            cur.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
            row = cur.fetchone()
        return self._row_to_message(row) if row else None

    def has_no_messages(self, conversation_id: int) -> bool:
        with self.cursor() as cur:
            cur.execute("SELECT 1 FROM messages WHERE conversation_id = ? LIMIT 1", (conversation_id,))
            return cur.fetchone() is None
