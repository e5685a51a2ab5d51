"""Application wiring for Voice Canvas.

Builds the note store and its collaborators from a Config. The store is
created once at startup and passed to every consumer; there is no global
instance.

Usage:
    config = Config()
    setup_logging(config.get("log_level"))
    with open_store(config) as store:
        note = store.create_note()
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from .audio_registry import AudioBlobRegistry
from .config import Config
from .note_store import NoteStore
from .storage import KeyValueBackend, MemoryBackend, PersistentStore, SQLiteBackend

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging.

    Args:
        level: Logging level name (default INFO). Unknown names fall back to INFO.
    """
    numeric = getattr(logging, (level or "INFO").upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)


def create_backend(config: Config) -> KeyValueBackend:
    """Create the key-value backend described by the config.

    A configured storage quota selects the size-limited in-memory backend;
    otherwise the SQLite database file is used.
    """
    quota = config.get_storage_quota()
    if quota is not None:
        logger.info(f"Using in-memory storage limited to {quota} bytes")
        return MemoryBackend(quota_bytes=quota)
    return SQLiteBackend(config.get_database_file())


def create_store(config: Config) -> NoteStore:
    """Build a note store from the config."""
    persistent_store = PersistentStore(create_backend(config))
    return NoteStore(
        persistent_store,
        AudioBlobRegistry(persistent_store),
        probe_timeout=config.get_audio_probe_timeout(),
        export_directory=config.get_export_directory(),
    )


@contextmanager
def open_store(config: Config) -> Generator[NoteStore, None, None]:
    """Create a note store and close its storage on exit."""
    store = create_store(config)
    try:
        yield store
    finally:
        store.persistent_store.close()
