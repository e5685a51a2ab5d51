"""Persistent storage for Voice Canvas.

This module is the serialization boundary between the note store and a
local key-value store. It holds three logical collections:

- ``voice-canvas-notes``: JSON array of all notes (with nested recordings)
- ``voice-canvas-folders``: JSON array of all folders
- ``audio-<id>``: one data-URI string per recording payload

Collections are written as whole-value replacements inside a single
backend transaction, so a reader never sees a partially written
collection. Reads of corrupt data fail soft: the error is logged and an
empty collection is returned.

There is no business logic here.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from .models import Folder, Note

logger = logging.getLogger(__name__)

NOTES_KEY = "voice-canvas-notes"
FOLDERS_KEY = "voice-canvas-folders"
AUDIO_KEY_PREFIX = "audio-"

T = TypeVar("T")


class StorageWriteError(Exception):
    """A write to the local store failed (I/O error, quota exceeded, ...).

    The note store does not roll back in-memory state when this is raised,
    so memory and persisted state may diverge until the next successful
    write of the same collection.
    """

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to write '{key}': {reason}")


class KeyValueBackend:
    """String-to-string key-value store.

    Subclasses must implement every method. ``set`` and ``delete`` must be
    atomic: a concurrent reader sees either the old or the new value.
    """

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError("Subclass must implement get")

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError("Subclass must implement set")

    def delete(self, key: str) -> None:
        raise NotImplementedError("Subclass must implement delete")

    def keys(self, prefix: str = "") -> List[str]:
        raise NotImplementedError("Subclass must implement keys")

    def close(self) -> None:
        """Release any resources held by the backend."""


class MemoryBackend(KeyValueBackend):
    """In-memory backend, optionally limited to a total size in bytes.

    The quota counts the UTF-8 size of keys and values, which emulates the
    per-origin quota of browser local storage.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def _size_with(self, key: str, value: str) -> int:
        total = 0
        for k, v in self._data.items():
            if k != key:
                total += len(k.encode("utf-8")) + len(v.encode("utf-8"))
        return total + len(key.encode("utf-8")) + len(value.encode("utf-8"))

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None and self._size_with(key, value) > self.quota_bytes:
            raise StorageWriteError(key, f"quota of {self.quota_bytes} bytes exceeded")
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


class SQLiteBackend(KeyValueBackend):
    """Key-value backend stored in a single SQLite table.

    Every write runs in its own transaction.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        """Open (and create if needed) the database.

        Args:
            db_path: Path to the SQLite database file, or ':memory:'
        """
        path_str = str(db_path)
        if path_str != ":memory:":
            Path(path_str).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(path_str)
        with self.conn:
            self.conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
        logger.info(f"Opened key-value database at {path_str}")

    def get(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        except sqlite3.Error as e:
            raise StorageWriteError(key, str(e)) from e

    def delete(self, key: str) -> None:
        try:
            with self.conn:
                self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageWriteError(key, str(e)) from e

    def keys(self, prefix: str = "") -> List[str]:
        # Range scan instead of LIKE so '%' and '_' in the prefix are literal
        rows = self.conn.execute(
            "SELECT key FROM kv WHERE key >= ? AND key < ? ORDER BY key",
            (prefix, prefix + "\uffff"),
        ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        self.conn.close()
        logger.info("Closed key-value database")


def _parse_records(
    raw: Optional[str], key: str, parse: Callable[[Dict[str, Any]], T]
) -> List[T]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.error(f"Failed to parse '{key}' from storage: {e}")
        return []
    if not isinstance(data, list):
        logger.error(f"Failed to parse '{key}' from storage: expected a JSON array")
        return []

    records: List[T] = []
    for index, item in enumerate(data):
        try:
            records.append(parse(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed record {index} in '{key}': {e!r}")
    return records


class PersistentStore:
    """Reads and writes notes, folders and audio payloads.

    Attributes:
        backend: The key-value backend holding the data
    """

    def __init__(self, backend: KeyValueBackend) -> None:
        self.backend = backend

    def load_notes(self) -> List[Note]:
        """Load all notes, or an empty list if none are stored or the data is corrupt."""
        return _parse_records(self.backend.get(NOTES_KEY), NOTES_KEY, Note.from_dict)

    def save_notes(self, notes: Sequence[Note]) -> None:
        """Replace the stored notes collection.

        Raises:
            StorageWriteError: If the backend write fails.
        """
        self.backend.set(NOTES_KEY, json.dumps([n.to_dict() for n in notes]))

    def load_folders(self) -> List[Folder]:
        """Load all folders, or an empty list if none are stored or the data is corrupt."""
        return _parse_records(self.backend.get(FOLDERS_KEY), FOLDERS_KEY, Folder.from_dict)

    def save_folders(self, folders: Sequence[Folder]) -> None:
        """Replace the stored folders collection.

        Raises:
            StorageWriteError: If the backend write fails.
        """
        self.backend.set(FOLDERS_KEY, json.dumps([f.to_dict() for f in folders]))

    def load_audio(self, audio_id: str) -> Optional[str]:
        """Get an audio payload (data URI) by ID, or None if absent."""
        return self.backend.get(f"{AUDIO_KEY_PREFIX}{audio_id}")

    def save_audio(self, audio_id: str, payload: str) -> None:
        """Store an audio payload.

        Raises:
            StorageWriteError: If the backend write fails.
        """
        self.backend.set(f"{AUDIO_KEY_PREFIX}{audio_id}", payload)

    def delete_audio(self, audio_id: str) -> None:
        """Remove an audio payload. Removing an absent payload is a no-op."""
        self.backend.delete(f"{AUDIO_KEY_PREFIX}{audio_id}")

    def audio_ids(self) -> List[str]:
        """List the IDs of all stored audio payloads."""
        return [k[len(AUDIO_KEY_PREFIX):] for k in self.backend.keys(AUDIO_KEY_PREFIX)]

    def close(self) -> None:
        self.backend.close()
