"""Persist synthesized audio and job metadata under per-episode directories."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from voicer.utils.filenames import build_episode_folder_name

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"
SPEAKER_MAPPING_FILENAME = "speaker_mapping.json"


@dataclass(slots=True)
class EpisodeSummary:
    """An episode directory found under the output root."""

    name: str
    path: Path
    created: datetime
    modified: datetime
    metadata: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": str(self.path),
            "created": self.created.isoformat(),
            "modified": self.modified.isoformat(),
            "metadata": self.metadata,
        }


class ArtifactWriter:
    """Write audio files and JSON documents for processing jobs.

    Filesystem errors are not caught here; they propagate to the caller.
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = Path(output_dir).resolve()

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def create_episode_dir(
        self, episode_name: str | None, *, today: date | None = None
    ) -> Path:
        """Create a fresh ``<name>_<YYYY-MM-DD>`` directory for one job.

        A name already taken on disk gets a numeric suffix (``_2``, ``_3``, ...).
        """

        folder_name = build_episode_folder_name(episode_name, today)
        path = await asyncio.to_thread(self._create_unique_dir, folder_name)
        logger.info("Episode directory created: %s", path)
        return path

    def _create_unique_dir(self, folder_name: str) -> Path:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        candidate = self._output_dir / folder_name
        counter = 2
        while True:
            try:
                candidate.mkdir()
                return candidate
            except FileExistsError:
                candidate = self._output_dir / f"{folder_name}_{counter}"
                counter += 1

    async def write_audio(self, episode_dir: Path, filename: str, audio: bytes) -> Path:
        """Write ``audio`` to ``episode_dir/filename``, replacing any previous file."""

        path = Path(episode_dir) / filename
        await asyncio.to_thread(path.write_bytes, audio)
        return path

    async def write_metadata(self, episode_dir: Path, metadata: dict[str, Any]) -> Path:
        return await self._write_json(Path(episode_dir) / METADATA_FILENAME, metadata)

    async def write_speaker_mapping(
        self, episode_dir: Path, mapping: dict[str, Any]
    ) -> Path:
        return await self._write_json(
            Path(episode_dir) / SPEAKER_MAPPING_FILENAME, mapping
        )

    async def _write_json(self, path: Path, payload: dict[str, Any]) -> Path:
        rendered = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
        await asyncio.to_thread(path.write_text, rendered, encoding="utf-8")
        return path

    async def read_metadata(self, episode_dir: Path) -> Optional[dict[str, Any]]:
        """Return the stored metadata document, or None when absent or unreadable."""

        return await asyncio.to_thread(_read_json, Path(episode_dir) / METADATA_FILENAME)

    def resolve_episode(self, name: str) -> Path:
        """Map an episode directory name to its path under the output root."""

        if not name or name in {".", ".."} or "/" in name or "\\" in name:
            raise ValueError(f"Invalid episode name: {name!r}")
        return self._output_dir / name

    async def list_episodes(self) -> list[EpisodeSummary]:
        """Return episode directories with their metadata, newest first."""

        return await asyncio.to_thread(self._scan_episodes)

    def _scan_episodes(self) -> list[EpisodeSummary]:
        if not self._output_dir.exists():
            return []

        episodes: list[EpisodeSummary] = []
        for entry in self._output_dir.iterdir():
            if not entry.is_dir():
                continue
            stats = entry.stat()
            episodes.append(
                EpisodeSummary(
                    name=entry.name,
                    path=entry,
                    created=datetime.fromtimestamp(stats.st_ctime, tz=timezone.utc),
                    modified=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                    metadata=_read_json(entry / METADATA_FILENAME),
                )
            )
        episodes.sort(key=lambda episode: episode.created, reverse=True)
        return episodes


def _read_json(path: Path) -> Optional[dict[str, Any]]:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


__all__ = [
    "ArtifactWriter",
    "EpisodeSummary",
    "METADATA_FILENAME",
    "SPEAKER_MAPPING_FILENAME",
]
