"""Pytest fixtures for Voice Canvas tests.

This module provides fixtures for test configuration, storage backends,
the audio registry and note stores with and without sample data.
"""

from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path
from typing import Generator

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from voicecanvas.config import Config
from voicecanvas.note_store import NoteStore
from voicecanvas.storage import MemoryBackend, PersistentStore, SQLiteBackend
from tests.helpers import FakeClock, FakeProbe, SpyRegistry, add_recording


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create temporary config directory for tests."""
    config_dir = tmp_path / "voice_canvas_test"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def test_config(test_config_dir: Path) -> Config:
    """Create test configuration."""
    return Config(config_dir=test_config_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def persistent_store(backend: MemoryBackend) -> PersistentStore:
    return PersistentStore(backend)


@pytest.fixture
def registry(persistent_store: PersistentStore) -> SpyRegistry:
    return SpyRegistry(persistent_store)


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    return tmp_path / "exports"


@pytest.fixture
def store(
    persistent_store: PersistentStore,
    registry: SpyRegistry,
    clock: FakeClock,
    probe: FakeProbe,
    export_dir: Path,
) -> NoteStore:
    """Create an empty note store backed by memory."""
    return NoteStore(
        persistent_store,
        registry,
        clock=clock,
        duration_probe=probe,
        probe_timeout=1.0,
        export_directory=export_dir,
    )


@pytest.fixture
def populated_store(store: NoteStore) -> NoteStore:
    """Create a note store with sample data.

    Folders:
        Shopping
        Work

    Notes:
        "Groceries"      (Shopping, 1 recording)
        "Meeting notes"  (Work, 2 recordings)
        "Ideas"          (unfiled)
        "Reading list"   (unfiled)
    """
    shopping = store.create_folder("Shopping")
    work = store.create_folder("Work")
    assert shopping is not None and work is not None

    samples = [
        ("Groceries", "milk, eggs, bread", shopping.id, 1),
        ("Meeting notes", "Discuss the Q3 roadmap", work.id, 2),
        ("Ideas", "A voice-driven outline tool", None, 0),
        ("Reading list", "Dune; The Left Hand of Darkness", None, 0),
    ]
    for title, content, folder_id, recording_count in samples:
        note = store.create_note(folder_id)
        store.update_note(replace(note, title=title, content=content))
        for i in range(recording_count):
            add_recording(store, note.id, duration=2.0 + i, name=f"{title} memo {i + 1}")
    return store


@pytest.fixture
def sqlite_backend(tmp_path: Path) -> Generator[SQLiteBackend, None, None]:
    backend = SQLiteBackend(tmp_path / "store.db")
    yield backend
    backend.close()
