"""Duration probing for imported audio.

This module extracts the playable duration of an audio payload.
Uses FFprobe for decoding, run as an asyncio subprocess so the probe is a
suspension point of the importing coroutine.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import shutil
import tempfile

logger = logging.getLogger(__name__)


class AudioDecodeError(Exception):
    """The duration of an audio payload could not be determined."""


def is_ffprobe_available() -> bool:
    """Check if ffprobe is available."""
    return shutil.which("ffprobe") is not None


def _write_temp_file(data: bytes, extension: str) -> str:
    """Write audio bytes to a new temp file and return its path."""
    fd, path = tempfile.mkstemp(suffix=f".{extension}")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except BaseException:
        os.unlink(path)
        raise
    return path


def _remove_written_file(write: "asyncio.Future[str]") -> None:
    if not write.cancelled() and write.exception() is None:
        os.unlink(write.result())


async def probe_duration(data: bytes, extension: str) -> float:
    """Get the duration of an audio payload in seconds.

    Args:
        data: Raw encoded audio bytes.
        extension: File extension matching the encoding (without dot),
            used as a hint for the demuxer.

    Returns:
        Duration in seconds.

    Raises:
        AudioDecodeError: If the temp file cannot be written, or ffprobe is
            missing, fails or reports no usable duration.
    """
    if not is_ffprobe_available():
        raise AudioDecodeError("ffprobe not found, cannot get audio duration")

    write = asyncio.ensure_future(asyncio.to_thread(_write_temp_file, data, extension))
    try:
        path = await asyncio.shield(write)
    except asyncio.CancelledError:
        # The worker thread still finishes the write
        write.add_done_callback(_remove_written_file)
        raise
    except OSError as e:
        raise AudioDecodeError(f"Could not write temporary audio file: {e}") from e

    try:
        try:
            process = await asyncio.create_subprocess_exec(
                "ffprobe",
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AudioDecodeError(f"Could not start ffprobe: {e}") from e
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise
    finally:
        os.unlink(path)

    if process.returncode != 0:
        raise AudioDecodeError(
            f"ffprobe failed: {stderr.decode(errors='replace').strip()[:200]}"
        )

    output = stdout.decode(errors="replace").strip()
    try:
        duration = float(output)
    except ValueError:
        raise AudioDecodeError(f"ffprobe reported no duration (got {output!r})") from None

    if not math.isfinite(duration) or duration < 0:
        raise AudioDecodeError(f"ffprobe reported an invalid duration: {duration}")

    logger.debug(f"Probed duration {duration:.2f}s")
    return duration
