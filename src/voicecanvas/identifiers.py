"""Identifier generation for notes, folders, recordings and audio blobs."""

from __future__ import annotations

from uuid6 import uuid7


def generate_id() -> str:
    """Return a new UUID7 as a 32-character hex string.

    UUID7 values are time-ordered, so IDs generated later sort later.
    """
    return uuid7().hex
