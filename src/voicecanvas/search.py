"""Search and list-view helpers for Voice Canvas.

This module provides filtering and ordering of notes and folders for
display. It never mutates anything; the note store uses ``sort_notes`` to
resolve display positions when reordering.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from .models import DEFAULT_NOTE_TITLE, Folder, Note

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_LENGTH = 100

_WHITESPACE_RE = re.compile(r"\s+")


def search_notes(notes: Iterable[Note], query: Optional[str]) -> List[Note]:
    """Filter notes by a case-insensitive substring of title or content.

    Args:
        notes: Notes to search
        query: Search text. An empty or blank query matches every note.

    Returns:
        Matching notes, in input order.
    """
    notes = list(notes)
    if not query or not query.strip():
        return notes

    needle = query.strip().lower()
    matches = [
        n for n in notes
        if needle in n.title.lower() or needle in n.content.lower()
    ]
    logger.debug(f"Search for '{needle}' matched {len(matches)} of {len(notes)} notes")
    return matches


def notes_in_scope(notes: Iterable[Note], folder_id: Optional[str]) -> List[Note]:
    """Get the notes of one folder, or the unfiled notes if folder_id is None."""
    return [n for n in notes if n.folder_id == folder_id]


def sort_notes(notes: Iterable[Note]) -> List[Note]:
    """Sort notes into display order.

    Notes with a manual order come first, ascending. The remaining notes
    follow, most recently updated first.
    """
    ordered = sorted((n for n in notes if n.order is not None), key=lambda n: n.order)
    unordered = sorted(
        (n for n in notes if n.order is None), key=lambda n: n.updated_at, reverse=True
    )
    return ordered + unordered


def sort_folders(folders: Iterable[Folder]) -> List[Folder]:
    """Sort folders into display order.

    Folders with an ``order`` come first, ascending; the rest keep their
    insertion order.
    """
    folders = list(folders)
    ordered = sorted((f for f in folders if f.order is not None), key=lambda f: f.order)
    return ordered + [f for f in folders if f.order is None]


def display_title(note: Note) -> str:
    """Get the title to show for a note."""
    return note.title.strip() or DEFAULT_NOTE_TITLE


def content_preview(content: str, length: int = DEFAULT_PREVIEW_LENGTH) -> str:
    """Build a one-line preview of note content.

    Whitespace is collapsed before truncating.

    Args:
        content: Note content
        length: Maximum preview length, not counting the ellipsis

    Returns:
        The preview, ending in "..." if it was truncated.
    """
    text = _WHITESPACE_RE.sub(" ", content).strip()
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."
