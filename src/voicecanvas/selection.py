"""Multi-selection of notes and bulk operations.

The selection set itself is owned by the note store, which guarantees it
only ever holds IDs of existing notes. This module computes new selections
(toggle, select all, range) and turns bulk intents into the store's bulk
primitives.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, FrozenSet, Optional, Sequence

if TYPE_CHECKING:
    from .note_store import NoteStore

logger = logging.getLogger(__name__)


class SelectionManager:
    """Selection operations layered on a note store.

    Attributes:
        store: The note store owning the selection set
    """

    def __init__(self, store: NoteStore) -> None:
        self.store = store

    @property
    def selected(self) -> FrozenSet[str]:
        return self.store.selected

    def is_selected(self, note_id: str) -> bool:
        return note_id in self.store.selected

    def toggle(self, note_id: str) -> bool:
        """Add a note to the selection, or remove it if already selected.

        Returns:
            True if the note is selected afterwards.
        """
        current = set(self.store.selected)
        if note_id in current:
            current.discard(note_id)
        else:
            current.add(note_id)
        return note_id in self.store.replace_selection(current)

    def select_all(self, folder_id: Optional[str] = None) -> FrozenSet[str]:
        """Select every note in a folder, or every note if folder_id is None."""
        notes = self.store.notes
        if folder_id is not None:
            notes = tuple(n for n in notes if n.folder_id == folder_id)
        return self.store.replace_selection(n.id for n in notes)

    def select_range(
        self, anchor_id: str, target_id: str, ordered_ids: Sequence[str]
    ) -> FrozenSet[str]:
        """Select the contiguous run of notes between anchor and target.

        The range is taken from the list as currently displayed and replaces
        the previous selection. If either end is not in the list the
        selection is left unchanged.

        Args:
            anchor_id: Note where the range starts (usually the last clicked)
            target_id: Note where the range ends
            ordered_ids: Note IDs in display order
        """
        ordered_ids = list(ordered_ids)
        if anchor_id not in ordered_ids or target_id not in ordered_ids:
            logger.debug(f"Range ends {anchor_id}..{target_id} not in displayed list")
            return self.store.selected

        start = ordered_ids.index(anchor_id)
        end = ordered_ids.index(target_id)
        if start > end:
            start, end = end, start
        return self.store.replace_selection(ordered_ids[start:end + 1])

    def clear(self) -> None:
        self.store.replace_selection(())

    def move_selected_to_folder(self, folder_id: Optional[str] = None) -> int:
        """Move all selected notes into a folder (None = unfiled).

        The selection is cleared afterwards, even if the move fails.

        Returns:
            Number of notes moved.
        """
        ids = self.store.selected
        try:
            return self.store.move_notes_to_folder(ids, folder_id)
        finally:
            self.clear()

    def delete_selected(self) -> int:
        """Delete all selected notes.

        The selection is cleared afterwards, even if the delete fails.

        Returns:
            Number of notes deleted.
        """
        ids = self.store.selected
        try:
            return self.store.delete_notes(ids)
        finally:
            self.clear()
