"""Note, folder and recording state management.

This module provides NoteStore, the single owner of the application's
notes, folders, current note and selection set. Every mutation:

1. Updates the in-memory collections (notes are immutable dataclasses, so
   a mutation replaces the note object)
2. Writes the changed collection(s) through to the persistent store
3. Notifies subscribers with a fresh StoreSnapshot

Lookups of unknown IDs and invalid input never raise; the operation is
refused, logged, and reported through its return value. Storage write
failures (StorageWriteError) do propagate, without rolling back memory.

There is no locking: the store is meant to be driven from one thread or
one asyncio event loop.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import (
    Awaitable,
    Callable,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
)

from .audio_probe import AudioDecodeError, probe_duration
from .audio_registry import (
    AudioBlobRegistry,
    AudioStorageError,
    decode_data_uri,
    encode_data_uri,
    extension_for_mime,
)
from .config import DEFAULT_AUDIO_PROBE_TIMEOUT
from .identifiers import generate_id
from .models import (
    DEFAULT_NOTE_TITLE,
    Folder,
    Note,
    Recording,
    RecordingData,
    RecordingPatch,
    StoreSnapshot,
)
from .search import notes_in_scope, sort_folders, sort_notes
from .selection import SelectionManager
from .storage import PersistentStore, StorageWriteError
from .timestamp_utils import current_timestamp, format_timestamp
from .validation import (
    ValidationError,
    validate_audio_mime_type,
    validate_cursor_position,
    validate_duration,
    validate_folder_name,
    validate_recording_name,
)

logger = logging.getLogger(__name__)

Listener = Callable[[StoreSnapshot], None]
DurationProbe = Callable[[bytes, str], Awaitable[float]]

_UNSAFE_FILENAME_RE = re.compile(r"[^\w\-. ]+")


def default_recording_name(created_at: int) -> str:
    """Build the name given to recordings saved without one."""
    return f"Recording {format_timestamp(created_at)}"


def name_from_filename(filename: Optional[str]) -> Optional[str]:
    """Derive a recording name from an imported file's name.

    >>> name_from_filename("Team standup.webm")
    'Team standup'
    """
    if not filename:
        return None
    return Path(filename).stem.strip() or None


class NoteStore:
    """Owns notes, folders, the current note and the selection set.

    Attributes:
        persistent_store: Where notes and folders are written through
        registry: Audio blob registry for recording payloads
        selection: Selection and bulk operations over this store
        probe_timeout: Seconds to wait for an imported file's duration
        export_directory: Default destination of exported recordings
    """

    def __init__(
        self,
        persistent_store: PersistentStore,
        registry: AudioBlobRegistry,
        clock: Callable[[], int] = current_timestamp,
        duration_probe: DurationProbe = probe_duration,
        probe_timeout: float = DEFAULT_AUDIO_PROBE_TIMEOUT,
        export_directory: Optional[Path] = None,
    ) -> None:
        """Load the stored collections.

        Args:
            persistent_store: Persistent store adapter
            registry: Audio blob registry
            clock: Returns the current time in ms since epoch
            duration_probe: Coroutine function returning an audio payload's
                duration from (bytes, extension)
            probe_timeout: Seconds before a duration probe is abandoned
            export_directory: Default directory for export_recording
        """
        self.persistent_store = persistent_store
        self.registry = registry
        self.probe_timeout = probe_timeout
        self.export_directory = export_directory
        self._clock = clock
        self._probe = duration_probe
        self._listeners: List[Listener] = []

        self._notes: List[Note] = persistent_store.load_notes()
        self._folders: List[Folder] = persistent_store.load_folders()
        self._current_id: Optional[str] = self._notes[0].id if self._notes else None
        self._selected: Set[str] = set()
        self.selection = SelectionManager(self)

        logger.info(f"Loaded {len(self._notes)} notes and {len(self._folders)} folders")

    # ===== Read access =====

    @property
    def notes(self) -> Tuple[Note, ...]:
        return tuple(self._notes)

    @property
    def folders(self) -> Tuple[Folder, ...]:
        return tuple(self._folders)

    @property
    def current_note(self) -> Optional[Note]:
        """The note being viewed, always the object held in ``notes``."""
        return self.get_note(self._current_id) if self._current_id else None

    @property
    def selected(self) -> FrozenSet[str]:
        return frozenset(self._selected)

    def get_note(self, note_id: str) -> Optional[Note]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def get_folder(self, folder_id: str) -> Optional[Folder]:
        for folder in self._folders:
            if folder.id == folder_id:
                return folder
        return None

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(
            notes=self.notes,
            folders=self.folders,
            current_note=self.current_note,
            selected=self.selected,
        )

    # ===== Subscriptions =====

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every change.

        Returns:
            A function that unregisters the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Store listener {listener!r} failed")

    def _commit(self, notes: bool = False, folders: bool = False) -> None:
        """Write changed collections through, then notify.

        Notes are written before folders. Subscribers are notified even if
        a write fails, since memory has already changed.
        """
        try:
            if notes:
                self.persistent_store.save_notes(self._notes)
            if folders:
                self.persistent_store.save_folders(self._folders)
        finally:
            self._notify()

    # ===== Helpers =====

    def _now(self) -> int:
        return self._clock()

    def _stamp(self, note: Note) -> int:
        """Timestamp for a modification of a note, never before its creation."""
        return max(self._now(), note.created_at)

    def _replace_note(self, updated: Note) -> None:
        self._notes = [updated if n.id == updated.id else n for n in self._notes]

    def _discard_blob(self, audio_id: str) -> None:
        """Delete an audio payload, logging instead of raising on failure."""
        try:
            self.registry.delete(audio_id)
        except StorageWriteError as e:
            logger.warning(f"Could not delete audio {audio_id}: {e}")

    def _remove_notes(self, ids: Set[str]) -> List[Note]:
        """Remove notes from memory along with their audio, selection and
        current-note references. Does not persist.

        Returns:
            The removed notes.
        """
        removed = [n for n in self._notes if n.id in ids]
        for note in removed:
            for recording in note.recordings:
                self._discard_blob(recording.audio_url)

        self._notes = [n for n in self._notes if n.id not in ids]
        self._selected -= ids
        if self._current_id in ids:
            self._current_id = self._notes[0].id if self._notes else None
        return removed

    # ===== Notes =====

    def create_note(self, folder_id: Optional[str] = None) -> Note:
        """Create an empty note and make it the current note.

        Args:
            folder_id: Folder to create the note in (None for unfiled)

        Returns:
            The new note.
        """
        now = self._now()
        note = Note(
            id=generate_id(),
            title=DEFAULT_NOTE_TITLE,
            content="",
            created_at=now,
            updated_at=now,
            folder_id=folder_id or None,
        )
        self._notes.append(note)
        self._current_id = note.id
        logger.info(f"Created note {note.id}")
        self._commit(notes=True)
        return note

    def update_note(self, note: Note) -> Optional[Note]:
        """Replace a note with a new version.

        The store always sets ``updated_at`` itself, ignoring the value on
        the given note. A note moved to another folder loses its manual
        ``order``. An unknown ID changes nothing but the collection is still
        written.

        Returns:
            The stored note, or None if no note has that ID.
        """
        stored: Optional[Note] = None
        existing = self.get_note(note.id)
        if existing is not None:
            order = note.order if note.folder_id == existing.folder_id else None
            stored = replace(note, order=order, updated_at=self._stamp(note))
            self._replace_note(stored)
            logger.info(f"Updated note {note.id}")
        else:
            logger.debug(f"update_note: note {note.id} not found")
        self._commit(notes=True)
        return stored

    def set_current_note(self, note_id: Optional[str]) -> Optional[Note]:
        """Make a note the current note, or clear it with None.

        Returns:
            The new current note. Unknown IDs leave the current note unchanged.
        """
        if note_id is None:
            self._current_id = None
        elif self.get_note(note_id) is not None:
            self._current_id = note_id
        else:
            logger.debug(f"set_current_note: note {note_id} not found")
            return self.current_note
        self._notify()
        return self.current_note

    def delete_note(self, note_id: str) -> bool:
        """Delete a note and the audio of all its recordings.

        Returns:
            True if the note existed.
        """
        return self.delete_notes([note_id]) == 1

    def delete_notes(self, note_ids: Iterable[str]) -> int:
        """Delete several notes with a single write of the notes collection.

        Audio deletion is best-effort: failures are logged and do not stop
        the notes from being deleted.

        Returns:
            Number of notes deleted.
        """
        removed = self._remove_notes(set(note_ids))
        if not removed:
            return 0
        logger.info(f"Deleted {len(removed)} note(s)")
        self._commit(notes=True)
        return len(removed)

    def move_notes_to_folder(
        self, note_ids: Iterable[str], folder_id: Optional[str] = None
    ) -> int:
        """Move notes into a folder, or unfile them with None.

        Moved notes lose their manual order, which belonged to the old
        folder. A single write covers all notes.

        Returns:
            Number of notes whose folder changed.
        """
        if folder_id is not None and self.get_folder(folder_id) is None:
            logger.warning(f"move_notes_to_folder: folder {folder_id} not found")
            return 0

        ids = set(note_ids)
        moved = 0
        updated: List[Note] = []
        for note in self._notes:
            if note.id in ids and note.folder_id != folder_id:
                note = replace(
                    note, folder_id=folder_id, order=None, updated_at=self._stamp(note)
                )
                moved += 1
            updated.append(note)

        if moved:
            self._notes = updated
            logger.info(f"Moved {moved} note(s) to folder {folder_id}")
            self._commit(notes=True)
        return moved

    def reorder_notes(
        self, source_index: int, dest_index: int, folder_id: Optional[str] = None
    ) -> bool:
        """Move a note to a new position within one folder (or the unfiled notes).

        Indexes refer to the display order given by ``search.sort_notes``.
        Every note in the folder gets its position stored in ``order``;
        ``updated_at`` is left alone.

        Returns:
            True if the order changed.
        """
        scope = sort_notes(notes_in_scope(self._notes, folder_id))
        if not (0 <= source_index < len(scope) and 0 <= dest_index < len(scope)):
            logger.warning(
                f"reorder_notes: index out of range ({source_index} -> {dest_index}, "
                f"{len(scope)} notes)"
            )
            return False
        if source_index == dest_index:
            return False

        scope.insert(dest_index, scope.pop(source_index))
        positions = {n.id: i for i, n in enumerate(scope)}
        self._notes = [
            replace(n, order=positions[n.id]) if n.id in positions else n
            for n in self._notes
        ]
        self._commit(notes=True)
        return True

    # ===== Recordings =====

    def save_recording(
        self, note_id: str, data: RecordingData, name: Optional[str] = None
    ) -> Optional[Recording]:
        """Append a recording to a note.

        The audio payload must already be in the registry under
        ``data.audio_url``.

        Returns:
            The new recording, or None if the note does not exist or the
            data is invalid.
        """
        note = self.get_note(note_id)
        if note is None:
            logger.debug(f"save_recording: note {note_id} not found")
            return None

        try:
            duration = validate_duration(data.duration)
            position = validate_cursor_position(data.timestamp)
            recording_name = validate_recording_name(name) if name and name.strip() else None
        except ValidationError as e:
            logger.warning(f"Rejected recording for note {note_id}: {e}")
            return None

        created_at = data.created_at if data.created_at is not None else self._now()
        recording = Recording(
            id=generate_id(),
            name=recording_name or default_recording_name(created_at),
            audio_url=data.audio_url,
            duration=duration,
            timestamp=position,
            created_at=created_at,
        )
        self._replace_note(
            replace(
                note,
                recordings=note.recordings + (recording,),
                updated_at=self._stamp(note),
            )
        )
        logger.info(f"Saved recording {recording.id} to note {note_id}")
        self._commit(notes=True)
        return recording

    def update_recording(
        self, note_id: str, recording_id: str, patch: RecordingPatch
    ) -> Optional[Recording]:
        """Apply a patch to a recording.

        Returns:
            The updated recording, or None if nothing was changed.
        """
        note = self.get_note(note_id)
        recording = note.find_recording(recording_id) if note else None
        if note is None or recording is None:
            logger.debug(f"update_recording: recording {recording_id} not found")
            return None
        if patch.name is None:
            return None

        try:
            name = validate_recording_name(patch.name)
        except ValidationError as e:
            logger.warning(f"Rejected rename of recording {recording_id}: {e}")
            return None

        updated = replace(recording, name=name)
        self._replace_note(
            replace(
                note,
                recordings=tuple(
                    updated if r.id == recording_id else r for r in note.recordings
                ),
                updated_at=self._stamp(note),
            )
        )
        self._commit(notes=True)
        return updated

    def delete_recording(self, note_id: str, recording_id: str) -> bool:
        """Delete a recording and its audio payload.

        Returns:
            True if the recording existed.
        """
        note = self.get_note(note_id)
        recording = note.find_recording(recording_id) if note else None
        if note is None or recording is None:
            logger.debug(f"delete_recording: recording {recording_id} not found")
            return False

        self._discard_blob(recording.audio_url)
        self._replace_note(
            replace(
                note,
                recordings=tuple(r for r in note.recordings if r.id != recording_id),
                updated_at=self._stamp(note),
            )
        )
        logger.info(f"Deleted recording {recording_id} from note {note_id}")
        self._commit(notes=True)
        return True

    async def import_recording(
        self,
        note_id: str,
        file_bytes: bytes,
        mime_type: str,
        suggested_name: Optional[str] = None,
    ) -> Optional[Recording]:
        """Import an audio file as a new recording on a note.

        Suspends twice: while encoding the payload (in a worker thread) and
        while probing its duration. The probe is abandoned after
        ``probe_timeout`` seconds. If probing fails or the import is
        cancelled the stored payload is removed again.

        Args:
            note_id: Note to attach the recording to
            file_bytes: Raw contents of the audio file
            mime_type: MIME type of the file
            suggested_name: Original file name; its stem becomes the
                recording name

        Returns:
            The new recording, or None if the note does not exist (also when
            it was deleted during the import) or the file type is not audio.

        Raises:
            AudioStorageError: If the payload could not be stored.
            AudioDecodeError: If the duration could not be determined.
        """
        try:
            mime = validate_audio_mime_type(mime_type)
        except ValidationError as e:
            logger.warning(f"Rejected audio import for note {note_id}: {e}")
            return None
        if self.get_note(note_id) is None:
            logger.debug(f"import_recording: note {note_id} not found")
            return None

        audio_id = generate_id()
        payload = await asyncio.to_thread(encode_data_uri, file_bytes, mime)
        try:
            self.registry.put(audio_id, payload)
        except StorageWriteError as e:
            raise AudioStorageError(audio_id, e.reason) from e

        try:
            duration = await asyncio.wait_for(
                self._probe(file_bytes, extension_for_mime(mime)),
                timeout=self.probe_timeout,
            )
        except asyncio.TimeoutError:
            self._discard_blob(audio_id)
            raise AudioDecodeError(
                f"Timed out after {self.probe_timeout}s probing audio duration"
            ) from None
        except BaseException:
            self._discard_blob(audio_id)
            raise

        recording = self.save_recording(
            note_id,
            RecordingData(audio_url=audio_id, duration=duration),
            name_from_filename(suggested_name),
        )
        if recording is None:
            self._discard_blob(audio_id)
        return recording

    def export_recording(
        self, recording: Recording, destination_dir: Optional[Path] = None
    ) -> Optional[Path]:
        """Write a recording's audio to a file.

        Args:
            recording: Recording to export
            destination_dir: Directory to write into (defaults to
                ``export_directory``)

        Returns:
            Path of the written file, or None if the audio is missing or
            unreadable.

        Raises:
            ValueError: If no destination was given and none is configured.
            OSError: If the file could not be written.
        """
        payload = self.registry.get(recording.audio_url)
        if payload is None:
            logger.warning(f"Audio for recording {recording.id} not found")
            return None
        try:
            mime, data = decode_data_uri(payload)
        except ValueError as e:
            logger.error(f"Audio for recording {recording.id} is unreadable: {e}")
            return None

        directory = destination_dir or self.export_directory
        if directory is None:
            raise ValueError("No export directory configured")
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        stem = _UNSAFE_FILENAME_RE.sub("_", recording.name).strip(" .") or recording.id
        extension = extension_for_mime(mime)
        dest = directory / f"{stem}.{extension}"
        counter = 1
        while dest.exists():
            dest = directory / f"{stem} ({counter}).{extension}"
            counter += 1

        dest.write_bytes(data)
        logger.info(f"Exported recording {recording.id} to {dest}")
        return dest

    def purge_orphaned_audio(self) -> int:
        """Delete stored audio not referenced by any recording.

        Returns:
            Number of payloads deleted.
        """
        referenced = (r.audio_url for n in self._notes for r in n.recordings)
        orphans = self.registry.orphaned_ids(referenced)
        for audio_id in orphans:
            self._discard_blob(audio_id)
        if orphans:
            logger.info(f"Purged {len(orphans)} orphaned audio payload(s)")
        return len(orphans)

    # ===== Folders =====

    def create_folder(self, name: str) -> Optional[Folder]:
        """Create a folder.

        Returns:
            The new folder, or None if the name is empty.
        """
        try:
            name = validate_folder_name(name)
        except ValidationError as e:
            logger.warning(f"Rejected folder: {e}")
            return None

        folder = Folder(id=generate_id(), name=name, created_at=self._now())
        self._folders.append(folder)
        logger.info(f"Created folder {folder.id} '{name}'")
        self._commit(folders=True)
        return folder

    def update_folder(self, folder_id: str, name: str) -> Optional[Folder]:
        """Rename a folder.

        Returns:
            The renamed folder, or None if it does not exist or the name is empty.
        """
        folder = self.get_folder(folder_id)
        if folder is None:
            logger.debug(f"update_folder: folder {folder_id} not found")
            return None
        try:
            name = validate_folder_name(name)
        except ValidationError as e:
            logger.warning(f"Rejected rename of folder {folder_id}: {e}")
            return None

        renamed = replace(folder, name=name)
        self._folders = [renamed if f.id == folder_id else f for f in self._folders]
        self._commit(folders=True)
        return renamed

    def delete_folder(self, folder_id: str) -> bool:
        """Delete a folder, moving its notes to unfiled.

        Notes are unfiled and written before the folder is removed, so a
        failure between the two writes never leaves a note pointing at a
        missing folder.

        Returns:
            True if the folder existed.
        """
        unfiled = 0
        updated: List[Note] = []
        for note in self._notes:
            if note.folder_id == folder_id:
                note = replace(note, folder_id=None, order=None, updated_at=self._stamp(note))
                unfiled += 1
            updated.append(note)
        self._notes = updated

        existed = self.get_folder(folder_id) is not None
        self._folders = [f for f in self._folders if f.id != folder_id]

        if not existed and not unfiled:
            logger.debug(f"delete_folder: folder {folder_id} not found")
            return False

        logger.info(f"Deleted folder {folder_id}, unfiled {unfiled} note(s)")
        self._commit(notes=unfiled > 0, folders=existed)
        return existed

    def reorder_folders(self, source_index: int, dest_index: int) -> bool:
        """Move a folder to a new display position.

        Every folder's ``order`` is set to its new index.

        Returns:
            True if the order changed.
        """
        folders = sort_folders(self._folders)
        if not (0 <= source_index < len(folders) and 0 <= dest_index < len(folders)):
            logger.warning(
                f"reorder_folders: index out of range ({source_index} -> {dest_index})"
            )
            return False
        if source_index == dest_index:
            return False

        folders.insert(dest_index, folders.pop(source_index))
        self._folders = [replace(f, order=i) for i, f in enumerate(folders)]
        self._commit(folders=True)
        return True

    # ===== Selection =====

    def replace_selection(self, note_ids: Iterable[str]) -> FrozenSet[str]:
        """Set the selection. IDs of notes that do not exist are dropped.

        Returns:
            The new selection.
        """
        known = {n.id for n in self._notes}
        self._selected = {i for i in note_ids if i in known}
        self._notify()
        return self.selected

    def toggle_select(self, note_id: str) -> bool:
        return self.selection.toggle(note_id)

    def is_selected(self, note_id: str) -> bool:
        return self.selection.is_selected(note_id)

    def select_all(self, folder_id: Optional[str] = None) -> FrozenSet[str]:
        return self.selection.select_all(folder_id)

    def select_range(
        self, anchor_id: str, target_id: str, ordered_ids: Iterable[str]
    ) -> FrozenSet[str]:
        return self.selection.select_range(anchor_id, target_id, list(ordered_ids))

    def clear_selection(self) -> None:
        self.selection.clear()

    def move_selected_to_folder(self, folder_id: Optional[str] = None) -> int:
        return self.selection.move_selected_to_folder(folder_id)

    def delete_selected(self) -> int:
        return self.selection.delete_selected()
