"""Data models for Voice Canvas.

This module defines immutable dataclasses representing the core entities:
Note, Recording and Folder, plus the small value types used to create and
patch recordings.

All IDs are UUID7 hex strings. All timestamps are integer milliseconds
since the epoch. Serialization uses the camelCase field names of the
persisted layout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

DEFAULT_NOTE_TITLE = "Untitled Note"


@dataclass(frozen=True)
class Recording:
    """A voice memo attached to a note.

    Attributes:
        id: Unique identifier for the recording
        name: Display name
        audio_url: Key of the audio payload in the audio blob registry
            (an opaque identifier, not a URL)
        duration: Length in seconds (0 if unknown)
        timestamp: Cursor position in the note content where the
            recording was inserted
        created_at: When the recording was created (ms since epoch)
    """

    id: str
    name: str
    audio_url: str
    duration: float
    timestamp: int
    created_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "audioUrl": self.audio_url,
            "duration": self.duration,
            "timestamp": self.timestamp,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recording":
        """Build a recording from its persisted form.

        Raises:
            KeyError: If a required field is missing.
            TypeError, ValueError: If a field has the wrong type.
        """
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            audio_url=str(data["audioUrl"]),
            duration=float(data.get("duration") or 0),
            timestamp=int(data.get("timestamp") or 0),
            created_at=int(data["createdAt"]),
        )


@dataclass(frozen=True)
class Note:
    """A user-authored text entry.

    Notes are immutable; every mutation in the store produces a new Note
    object that replaces the old one in the notes collection.

    Attributes:
        id: Unique identifier for the note
        title: Note title (may be empty)
        content: Opaque content string produced by the editor
        created_at: When the note was created (ms since epoch)
        updated_at: When the note was last modified (ms since epoch)
        recordings: Recordings in display order
        folder_id: ID of the containing folder (None if unfiled)
        order: Manual position within the note's folder (None if never
            reordered)
    """

    id: str
    title: str
    content: str
    created_at: int
    updated_at: int
    recordings: Tuple[Recording, ...] = ()
    folder_id: Optional[str] = None
    order: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "recordings": [r.to_dict() for r in self.recordings],
        }
        if self.folder_id is not None:
            data["folderId"] = self.folder_id
        if self.order is not None:
            data["order"] = self.order
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        """Build a note from its persisted form.

        A missing or null ``folderId`` both mean "unfiled".

        Raises:
            KeyError: If a required field is missing.
            TypeError, ValueError: If a field has the wrong type.
        """
        created_at = int(data["createdAt"])
        folder_id = data.get("folderId")
        order = data.get("order")
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            created_at=created_at,
            updated_at=int(data.get("updatedAt") or created_at),
            recordings=tuple(
                Recording.from_dict(r) for r in data.get("recordings") or []
            ),
            folder_id=str(folder_id) if folder_id else None,
            order=int(order) if order is not None else None,
        )

    def find_recording(self, recording_id: str) -> Optional[Recording]:
        """Return the recording with the given ID, or None."""
        for recording in self.recordings:
            if recording.id == recording_id:
                return recording
        return None


@dataclass(frozen=True)
class Folder:
    """A named, non-owning grouping of notes.

    Attributes:
        id: Unique identifier for the folder
        name: Display name (never empty)
        created_at: When the folder was created (ms since epoch)
        order: Manual position in the folder list (None falls back to
            insertion order)
    """

    id: str
    name: str
    created_at: int
    order: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
        }
        if self.order is not None:
            data["order"] = self.order
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Folder":
        order = data.get("order")
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            created_at=int(data["createdAt"]),
            order=int(order) if order is not None else None,
        )


@dataclass(frozen=True)
class RecordingData:
    """What a capture collaborator hands to the store for a new recording.

    The audio payload must already be stored in the audio blob registry
    under ``audio_url``.
    """

    audio_url: str
    duration: float = 0.0
    timestamp: int = 0
    created_at: Optional[int] = None


@dataclass(frozen=True)
class RecordingPatch:
    """Mutable fields of a recording. Only the name can be changed."""

    name: Optional[str] = None


@dataclass(frozen=True)
class StoreSnapshot:
    """Observable state of the note store, passed to subscribers."""

    notes: Tuple[Note, ...]
    folders: Tuple[Folder, ...]
    current_note: Optional[Note]
    selected: FrozenSet[str] = field(default_factory=frozenset)


# MIME types accepted by import_recording
AUDIO_MIME_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/opus": "opus",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/wave": "wav",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
    "audio/mp4": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
}
