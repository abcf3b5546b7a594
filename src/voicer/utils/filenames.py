"""Filename conventions for episode directories and synthesized audio."""

from __future__ import annotations

import re
import string
from datetime import date
from typing import Optional

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")

DEFAULT_EPISODE_NAME = "Unknown_Episode"
AUDIO_EXTENSION = ".mp3"


def sanitize_episode_name(name: str | None, *, max_length: int = 80) -> str:
    """Return a filesystem-friendly episode name.

    Runs of characters outside ``[A-Za-z0-9_-]`` collapse to a single underscore.
    Case is preserved so directory names stay recognizable next to the script
    they came from.
    """

    if not name:
        return DEFAULT_EPISODE_NAME

    cleaned = _UNSAFE.sub("_", name.strip()).strip("_")
    if max_length > 0 and len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip("_")
    return cleaned or DEFAULT_EPISODE_NAME


def build_episode_folder_name(name: str | None, day: Optional[date] = None) -> str:
    """``<sanitized-episode-name>_<YYYY-MM-DD>``"""

    day = day or date.today()
    return f"{sanitize_episode_name(name)}_{day.isoformat()}"


def chunk_suffix(chunk_index: int, total_chunks: int) -> str:
    """Letter suffix for a split dialogue: ``""`` when unsplit, else a, b, c, ..."""

    if total_chunks <= 1:
        return ""
    letters = string.ascii_lowercase
    if chunk_index < len(letters):
        return letters[chunk_index]
    # Past "z" the suffix grows like spreadsheet columns: aa, ab, ...
    suffix = ""
    n = chunk_index
    while True:
        n, rem = divmod(n, len(letters))
        suffix = letters[rem] + suffix
        if n == 0:
            return suffix
        n -= 1


def build_item_id(
    original_index: int, speaker: str, chunk_index: int = 0, total_chunks: int = 1
) -> str:
    """Build a work item id such as ``004b_NARRATOR``.

    The numeric prefix is the 1-based dialogue position padded to three digits.
    """

    return f"{original_index + 1:03d}{chunk_suffix(chunk_index, total_chunks)}_{speaker}"


def build_audio_filename(item_id: str) -> str:
    """``<id>.mp3``, with path separators in speaker names replaced."""

    safe_id = item_id.replace("/", "_").replace("\\", "_")
    return f"{safe_id}{AUDIO_EXTENSION}"


__all__ = [
    "AUDIO_EXTENSION",
    "DEFAULT_EPISODE_NAME",
    "build_audio_filename",
    "build_episode_folder_name",
    "build_item_id",
    "chunk_suffix",
    "sanitize_episode_name",
]
