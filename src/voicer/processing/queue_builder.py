"""Expand dialogues and a speaker mapping into an ordered synthesis queue."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from voicer.schemas.processing import DialogueLine, EpisodeInfo, SpeakerVoice
from voicer.services.tts.chunk_splitter import DEFAULT_MAX_CHARS, ChunkSplitter
from voicer.utils.filenames import build_item_id

from .artifacts import ArtifactWriter
from .models import WorkItem

logger = logging.getLogger(__name__)

DialogueInput = Union[DialogueLine, Mapping[str, Any]]
SpeakerInput = Union[SpeakerVoice, Mapping[str, Any]]
EpisodeInput = Union[EpisodeInfo, Mapping[str, Any], None]


def coerce_dialogues(dialogues: Iterable[DialogueInput]) -> list[DialogueLine]:
    return [
        item if isinstance(item, DialogueLine) else DialogueLine.model_validate(item)
        for item in dialogues
    ]


def coerce_speaker_mapping(
    mapping: Mapping[str, SpeakerInput],
) -> dict[str, SpeakerVoice]:
    return {
        speaker: voice if isinstance(voice, SpeakerVoice) else SpeakerVoice.model_validate(voice)
        for speaker, voice in mapping.items()
    }


def coerce_episode_info(info: EpisodeInput) -> EpisodeInfo:
    if info is None:
        return EpisodeInfo()
    if isinstance(info, EpisodeInfo):
        return info
    return EpisodeInfo.model_validate(info)


class QueueBuilder:
    """Build the work queue for one episode.

    Dialogues whose speaker has no voice mapping are skipped with a warning.
    Over-long lines are split with ``ChunkSplitter``; the chunks of one line
    stay contiguous and carry letter suffixes in their ids.
    """

    def __init__(
        self,
        artifacts: ArtifactWriter,
        *,
        max_chunk_chars: int = DEFAULT_MAX_CHARS,
        splitter: Optional[ChunkSplitter] = None,
    ) -> None:
        self._artifacts = artifacts
        self._splitter = splitter or ChunkSplitter(max_chunk_chars)

    @property
    def max_chunk_chars(self) -> int:
        return self._splitter.max_chars

    async def build(
        self,
        dialogues: Iterable[DialogueInput],
        speaker_mapping: Mapping[str, SpeakerInput],
        episode_info: EpisodeInput = None,
    ) -> tuple[list[WorkItem], Path]:
        """Return the ordered queue and the freshly created episode directory."""

        lines = coerce_dialogues(dialogues)
        mapping = coerce_speaker_mapping(speaker_mapping)
        info = coerce_episode_info(episode_info)

        episode_dir = await self._artifacts.create_episode_dir(info.name)
        return self.build_items(lines, mapping), episode_dir

    def build_items(
        self,
        dialogues: list[DialogueLine],
        speaker_mapping: Mapping[str, SpeakerVoice],
    ) -> list[WorkItem]:
        queue: list[WorkItem] = []

        for index, dialogue in enumerate(dialogues):
            voice = speaker_mapping.get(dialogue.speaker)
            if voice is None:
                logger.warning("No voice mapping for speaker: %s", dialogue.speaker)
                continue

            text = dialogue.speech_text
            if not text.strip():
                logger.warning(
                    "Skipping empty dialogue %d for speaker %s", index, dialogue.speaker
                )
                continue

            chunks = self._splitter.split(text)
            settings = voice.settings.as_request_settings()
            for chunk_index, chunk in enumerate(chunks):
                queue.append(
                    WorkItem(
                        id=build_item_id(index, dialogue.speaker, chunk_index, len(chunks)),
                        speaker=dialogue.speaker,
                        text=chunk,
                        original_index=index,
                        chunk_index=chunk_index,
                        total_chunks=len(chunks),
                        voice_id=voice.voice_id,
                        voice_settings=dict(settings),
                    )
                )

        logger.info("Processing queue built with %d items", len(queue))
        return queue


__all__ = [
    "QueueBuilder",
    "coerce_dialogues",
    "coerce_episode_info",
    "coerce_speaker_mapping",
]
