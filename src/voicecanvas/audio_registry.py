"""Audio blob registry for Voice Canvas.

This module handles storage of recording payloads:
- Storing, fetching and deleting encoded audio by ID
- Encoding raw bytes as data URIs and decoding them back
- Mapping MIME types to file extensions for export

Payloads live under their own key namespace, separate from note and
folder metadata, so changing a note never rewrites its audio.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterable, List, Optional, Tuple

from .models import AUDIO_MIME_EXTENSIONS
from .storage import PersistentStore, StorageWriteError
from .validation import normalize_mime_type

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_EXTENSION = "webm"


class AudioStorageError(Exception):
    """Storing an imported audio payload failed."""

    def __init__(self, audio_id: str, reason: str) -> None:
        self.audio_id = audio_id
        self.reason = reason
        super().__init__(f"Failed to store audio {audio_id}: {reason}")


class AudioBlobRegistry:
    """Maps opaque audio IDs to data-URI payloads.

    Absent IDs are not errors: ``get`` returns None and ``delete`` does
    nothing, leaving callers to show a recoverable "audio not found" state.
    """

    def __init__(self, store: PersistentStore) -> None:
        """Initialize the registry.

        Args:
            store: Persistent store holding the payloads.
        """
        self.store = store

    def put(self, audio_id: str, payload: str) -> None:
        """Store a payload under an ID, replacing any previous payload.

        Raises:
            StorageWriteError: If the payload could not be written.
        """
        self.store.save_audio(audio_id, payload)
        logger.info(f"Stored audio {audio_id} ({len(payload)} chars)")

    def get(self, audio_id: str) -> Optional[str]:
        """Get a payload by ID.

        Returns:
            The data URI, or None if no payload is stored under the ID.
        """
        return self.store.load_audio(audio_id)

    def delete(self, audio_id: str) -> None:
        """Delete a payload. Deleting an absent ID is a no-op.

        Raises:
            StorageWriteError: If the backend refused the delete.
        """
        self.store.delete_audio(audio_id)
        logger.info(f"Deleted audio {audio_id}")

    def contains(self, audio_id: str) -> bool:
        return self.get(audio_id) is not None

    def orphaned_ids(self, referenced: Iterable[str]) -> List[str]:
        """List stored audio IDs not referenced by any recording.

        Args:
            referenced: The ``audio_url`` values of all known recordings.
        """
        referenced_set = set(referenced)
        return [a for a in self.store.audio_ids() if a not in referenced_set]


def encode_data_uri(data: bytes, mime_type: str) -> str:
    """Encode bytes as a base64 data URI.

    >>> encode_data_uri(b"abc", "audio/webm")
    'data:audio/webm;base64,YWJj'
    """
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{normalize_mime_type(mime_type)};base64,{encoded}"


def decode_data_uri(uri: str) -> Tuple[str, bytes]:
    """Decode a base64 data URI.

    Returns:
        Tuple of (MIME type, raw bytes).

    Raises:
        ValueError: If the string is not a base64 data URI.
    """
    if not uri.startswith("data:") or "," not in uri:
        raise ValueError("Not a data URI")
    header, encoded = uri[len("data:"):].split(",", 1)
    params = header.split(";")
    if "base64" not in params[1:]:
        raise ValueError("Only base64 data URIs are supported")
    try:
        data = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
    return normalize_mime_type(params[0]), data


def extension_for_mime(mime_type: str) -> str:
    """Get the file extension (without dot) for an audio MIME type.

    Unknown types fall back to ``webm``, the format produced by the
    recording pipeline.
    """
    return AUDIO_MIME_EXTENSIONS.get(normalize_mime_type(mime_type), DEFAULT_AUDIO_EXTENSION)
