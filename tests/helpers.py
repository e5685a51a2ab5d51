"""Test helpers for Voice Canvas tests.

This module provides fakes for the clock, the audio registry and the
duration probe, plus shortcuts for building and looking up test data.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional, Tuple

from voicecanvas.audio_registry import AudioBlobRegistry, encode_data_uri
from voicecanvas.identifiers import generate_id
from voicecanvas.models import Folder, Note, Recording, RecordingData
from voicecanvas.note_store import NoteStore
from voicecanvas.storage import PersistentStore, StorageWriteError

# Start of the fake clock: 2023-11-14 22:13:20 UTC
CLOCK_START = 1_700_000_000_000

FAKE_AUDIO = b"OggS fake opus payload"


class FakeClock:
    """Millisecond clock that advances one second on every reading."""

    def __init__(self, start: int = CLOCK_START, step: int = 1000) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


class SpyRegistry(AudioBlobRegistry):
    """Audio registry that records delete calls and can be told to fail."""

    def __init__(self, store: PersistentStore) -> None:
        super().__init__(store)
        self.deleted: List[str] = []
        self.fail_deletes = False

    def delete(self, audio_id: str) -> None:
        self.deleted.append(audio_id)
        if self.fail_deletes:
            raise StorageWriteError(f"audio-{audio_id}", "simulated failure")
        super().delete(audio_id)


class FakeProbe:
    """Stand-in for the ffprobe duration probe."""

    def __init__(self, duration: float = 12.5) -> None:
        self.duration = duration
        self.error: Optional[Exception] = None
        self.delay: float = 0.0
        self.calls: List[Tuple[bytes, str]] = []

    async def __call__(self, data: bytes, extension: str) -> float:
        self.calls.append((data, extension))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.duration


def add_recording(
    store: NoteStore, note_id: str, duration: float = 3.0, name: Optional[str] = None
) -> Optional[Recording]:
    """Store an audio payload and attach it to a note, like the capture pipeline does."""
    audio_id = generate_id()
    store.registry.put(audio_id, encode_data_uri(FAKE_AUDIO, "audio/webm"))
    return store.save_recording(
        note_id, RecordingData(audio_url=audio_id, duration=duration), name
    )


def note_by_title(store: NoteStore, title: str) -> Note:
    return next(n for n in store.notes if n.title == title)


def folder_by_name(store: NoteStore, name: str) -> Folder:
    return next(f for f in store.folders if f.name == name)
