import json
import logging
import sqlite3
import threading
from typing import List, Optional, Sequence, Any

from pydantic import ValidationError

from ..errors import StorageParseError
from ..schemas import HistoryEntry

logger = logging.getLogger(__name__)

Row = sqlite3.Row

SCHEMA_VERSION = 1

CREDENTIAL_KEY = "openai_api_key"
HISTORY_KEY = "image_history"


DDL = """
-- Client-local key/value storage
CREATE TABLE IF NOT EXISTS local_storage (
  key             TEXT PRIMARY KEY,
  value           TEXT NOT NULL,
  updated_at      TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


def decode_history(raw: str) -> List[HistoryEntry]:
    """Decode a stored history value.

    Raises :class:`StorageParseError` when the value is not a JSON list.
    Entries that fail validation are skipped.
    """
    try:
        items = json.loads(raw)
    except ValueError as exc:
        raise StorageParseError("history is not valid JSON") from exc
    if not isinstance(items, list):
        raise StorageParseError("history is not a list")

    entries: List[HistoryEntry] = []
    for position, item in enumerate(items):
        try:
            entries.append(HistoryEntry.model_validate(item))
        except ValidationError:
            logger.warning("Dropping unreadable history entry at position %s", position)
    return entries


def encode_history(entries: Sequence[HistoryEntry]) -> str:
    return json.dumps([entry.model_dump(mode="json") for entry in entries])


class LocalStorage:
    """Durable key/value storage for state that never leaves the client."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._local = threading.local()
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute("PRAGMA synchronous = NORMAL;")
        conn.row_factory = sqlite3.Row
        self._ensure_schema_with_connection(conn)
        conn.close()

    @property
    def connection(self) -> sqlite3.Connection:
        """Get a thread-local connection to the database."""
        if not hasattr(self._local, 'connection') or self._local.connection is None:
            self._local.connection = sqlite3.connect(self.db_path)
            self._local.connection.execute("PRAGMA journal_mode = WAL;")
            self._local.connection.execute("PRAGMA synchronous = NORMAL;")
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    # ---------- internal ----------
    def _ensure_schema_with_connection(self, conn: sqlite3.Connection) -> None:
        """Ensure schema exists using the provided connection."""
        cur = conn.execute("PRAGMA user_version;")
        version = cur.fetchone()[0]
        if version < 1:
            conn.executescript(DDL)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
            conn.commit()

    def close(self) -> None:
        """Close the thread-local connection if it exists."""
        if hasattr(self._local, 'connection') and self._local.connection is not None:
            self._local.connection.commit()
            self._local.connection.close()
            self._local.connection = None

    def _one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        cur = self.connection.execute(sql, params)
        return cur.fetchone()

    # ---------- raw items ----------
    def get_item(self, key: str) -> Optional[str]:
        row = self._one("SELECT value FROM local_storage WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        with self.connection:
            self.connection.execute(
                """
                INSERT INTO local_storage (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = datetime('now')
                """,
                (key, value)
            )

    def remove_item(self, key: str) -> None:
        with self.connection:
            self.connection.execute("DELETE FROM local_storage WHERE key = ?", (key,))

    def clear(self) -> None:
        with self.connection:
            self.connection.execute("DELETE FROM local_storage")

    # ---------- credential ----------
    def load_credential(self) -> Optional[str]:
        return self.get_item(CREDENTIAL_KEY) or None

    def save_credential(self, api_key: Optional[str]) -> None:
        if api_key:
            self.set_item(CREDENTIAL_KEY, api_key)
        else:
            self.remove_item(CREDENTIAL_KEY)

    # ---------- history ----------
    def load_history(self) -> List[HistoryEntry]:
        raw = self.get_item(HISTORY_KEY)
        if raw is None:
            return []
        try:
            return decode_history(raw)
        except StorageParseError as exc:
            logger.warning("Discarding stored history: %s", exc)
            self.remove_item(HISTORY_KEY)
            return []

    def save_history(self, entries: Sequence[HistoryEntry]) -> None:
        self.set_item(HISTORY_KEY, encode_history(entries))
