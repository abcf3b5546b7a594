"""Shared helpers."""

from .filenames import (
    AUDIO_EXTENSION,
    DEFAULT_EPISODE_NAME,
    build_audio_filename,
    build_episode_folder_name,
    build_item_id,
    chunk_suffix,
    sanitize_episode_name,
)

__all__ = [
    "AUDIO_EXTENSION",
    "DEFAULT_EPISODE_NAME",
    "build_audio_filename",
    "build_episode_folder_name",
    "build_item_id",
    "chunk_suffix",
    "sanitize_episode_name",
]
