"""Input validation for Voice Canvas.

This module provides validation functions for user inputs reaching the
note store. All validators raise ValidationError with descriptive messages.
The store catches ValidationError and refuses the operation without
raising, so callers that bypass UI-level validation stay safe.
"""

from __future__ import annotations

import math
from typing import Any, Optional

from .models import AUDIO_MIME_EXTENSIONS

__all__ = [
    "ValidationError",
    "validate_folder_name",
    "validate_recording_name",
    "validate_duration",
    "validate_cursor_position",
    "validate_audio_mime_type",
    "normalize_mime_type",
]

MAX_FOLDER_NAME_LENGTH = 100
MAX_RECORDING_NAME_LENGTH = 200


class ValidationError(ValueError):
    """Validation error with field and message attributes."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(field='{self.field}', message='{self.message}')"


def _validate_name(value: Any, field_name: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(
            field_name, f"must be a string, got {type(value).__name__}"
        )
    stripped = value.strip()
    if not stripped:
        raise ValidationError(field_name, "cannot be empty or whitespace only")
    if len(stripped) > max_length:
        raise ValidationError(
            field_name, f"cannot exceed {max_length} characters (got {len(stripped)})"
        )
    return stripped


def validate_folder_name(name: Any) -> str:
    """Validate a folder name.

    Returns:
        The trimmed name.
    """
    return _validate_name(name, "folder_name", MAX_FOLDER_NAME_LENGTH)


def validate_recording_name(name: Any) -> str:
    """Validate a recording name.

    Returns:
        The trimmed name.
    """
    return _validate_name(name, "recording_name", MAX_RECORDING_NAME_LENGTH)


def validate_duration(duration: Any) -> float:
    """Validate a recording duration in seconds.

    Returns:
        The duration as a float.
    """
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise ValidationError(
            "duration", f"must be a number, got {type(duration).__name__}"
        )
    if not math.isfinite(duration):
        raise ValidationError("duration", "must be finite")
    if duration < 0:
        raise ValidationError("duration", f"cannot be negative (got {duration})")
    return float(duration)


def validate_cursor_position(position: Any) -> int:
    """Validate the content cursor position stored on a recording."""
    if isinstance(position, bool) or not isinstance(position, int):
        raise ValidationError(
            "timestamp", f"must be an integer, got {type(position).__name__}"
        )
    if position < 0:
        raise ValidationError("timestamp", f"cannot be negative (got {position})")
    return position


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Lowercase a MIME type and drop its parameters.

    >>> normalize_mime_type("Audio/WebM; codecs=opus")
    'audio/webm'
    """
    if not mime_type:
        return ""
    return mime_type.split(";", 1)[0].strip().lower()


def validate_audio_mime_type(mime_type: Any) -> str:
    """Validate the MIME type of an imported audio file.

    Returns:
        The normalized MIME type.
    """
    if not isinstance(mime_type, str):
        raise ValidationError(
            "mime_type", f"must be a string, got {type(mime_type).__name__}"
        )
    normalized = normalize_mime_type(mime_type)
    if normalized not in AUDIO_MIME_EXTENSIONS:
        raise ValidationError(
            "mime_type",
            f"unsupported audio format: {mime_type}. "
            f"Supported formats: {', '.join(sorted(AUDIO_MIME_EXTENSIONS))}",
        )
    return normalized
