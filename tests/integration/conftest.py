"""Pytest fixtures for integration tests.

Provides note stores backed by a real SQLite database file, reopened
between steps to check what actually reached disk.
"""

from __future__ import annotations

from typing import Callable, Generator, List

import pytest

from tests.helpers import FakeClock, FakeProbe
from voicecanvas.audio_registry import AudioBlobRegistry
from voicecanvas.config import Config
from voicecanvas.note_store import NoteStore
from voicecanvas.storage import PersistentStore, SQLiteBackend


@pytest.fixture
def open_sqlite_store(
    test_config: Config, clock: FakeClock, probe: FakeProbe
) -> Generator[Callable[[], NoteStore], None, None]:
    """Factory opening a note store on the config's database file.

    Every store opened through the factory is closed at teardown.
    """
    opened: List[PersistentStore] = []

    def factory() -> NoteStore:
        persistent_store = PersistentStore(SQLiteBackend(test_config.get_database_file()))
        opened.append(persistent_store)
        return NoteStore(
            persistent_store,
            AudioBlobRegistry(persistent_store),
            clock=clock,
            duration_probe=probe,
            probe_timeout=test_config.get_audio_probe_timeout(),
            export_directory=test_config.get_export_directory(),
        )

    yield factory

    for persistent_store in opened:
        persistent_store.close()
