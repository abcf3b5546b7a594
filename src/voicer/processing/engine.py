"""Sequential batch synthesis engine with pause, resume, cancel and retry."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from voicer.config import Settings
from voicer.services.tts.synthesis_client import SpeechBackend, SynthesisClient, SynthesisError
from voicer.utils.filenames import build_audio_filename

from .artifacts import ArtifactWriter
from .errors import ProcessingConfigurationError, ProcessingStateError
from .events import EventBus, EventName, Listener, ProcessingEvent
from .models import ItemStatus, ProcessingStats, WorkItem
from .queue_builder import (
    DialogueInput,
    EpisodeInput,
    QueueBuilder,
    SpeakerInput,
    coerce_speaker_mapping,
)

logger = logging.getLogger(__name__)

DEFAULT_ITEM_DELAY = 0.1


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


_TERMINAL_STATES = {JobState.COMPLETED, JobState.CANCELLED, JobState.ABORTED}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProcessingEngine:
    """
    Drive one episode's work queue through speech synthesis, one item at a time.

    The engine owns the queue and every counter; callers observe progress via
    ``get_stats()`` or by subscribing to lifecycle events with ``on()``.
    Pause and cancel are cooperative: they flip flags that the loop checks
    between items, so an in-flight synthesis call always finishes.

    Elapsed time is measured from the first ``start()`` of the job and
    includes time spent paused.
    """

    def __init__(
        self,
        synthesis: SynthesisClient,
        artifacts: ArtifactWriter,
        *,
        queue_builder: Optional[QueueBuilder] = None,
        item_delay: float = DEFAULT_ITEM_DELAY,
        session_id: Optional[str] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._synthesis = synthesis
        self._artifacts = artifacts
        self._builder = queue_builder or QueueBuilder(artifacts)
        self.item_delay = item_delay
        self.session_id = session_id
        self.events = events or EventBus()
        self._clock = clock
        self._sleep = sleep

        self.queue: list[WorkItem] = []
        self.processed: list[WorkItem] = []
        self.failed: list[WorkItem] = []
        self.current_index = 0
        self.is_processing = False
        self.is_paused = False
        self.start_time: Optional[float] = None
        self.episode_dir: Optional[Path] = None
        self._state = JobState.IDLE
        self._retry_backlog: list[WorkItem] = []
        self._current_item: Optional[WorkItem] = None
        self._running = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: SpeechBackend,
        *,
        output_dir: Optional[Path] = None,
        session_id: Optional[str] = None,
    ) -> "ProcessingEngine":
        artifacts = ArtifactWriter(output_dir or settings.output_dir)
        synthesis = SynthesisClient(
            backend,
            max_attempts=settings.retry_attempts,
            base_delay=settings.retry_delay_seconds,
        )
        builder = QueueBuilder(artifacts, max_chunk_chars=settings.max_chunk_chars)
        return cls(
            synthesis,
            artifacts,
            queue_builder=builder,
            item_delay=settings.item_delay_seconds,
            session_id=session_id,
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def retry_ceiling(self) -> int:
        return self._synthesis.max_attempts

    @property
    def is_running(self) -> bool:
        """True while the processing loop is active."""
        return self._running

    def on(self, event: EventName, listener: Listener) -> Callable[[], None]:
        return self.events.on(event, listener)

    def get_stats(self) -> ProcessingStats:
        total = len(self.queue)
        completed = len(self.processed)
        failed = len(self.failed)
        remaining = total - completed - failed

        percentage = int(100 * completed / total + 0.5) if total else 0
        if percentage == 100 and remaining > 0:
            percentage = 99

        elapsed = self._elapsed_ms()
        avg_time_per_item = elapsed / completed if completed else 0.0

        return ProcessingStats(
            total=total,
            completed=completed,
            failed=failed,
            remaining=remaining,
            percentage=percentage,
            elapsed=elapsed,
            estimated_remaining=int(avg_time_per_item * remaining),
            avg_time_per_item=avg_time_per_item,
            is_processing=self.is_processing,
            is_paused=self.is_paused,
            current_item=self._current_item or self._peek_next(),
        )

    def _elapsed_ms(self) -> int:
        if self.start_time is None:
            return 0
        return int((self._clock() - self.start_time) * 1000)

    def _progress(self) -> dict[str, int]:
        stats = self.get_stats()
        return {
            "completed": stats.completed,
            "failed": stats.failed,
            "remaining": stats.remaining,
            "percentage": stats.percentage,
        }

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def initialize(
        self,
        dialogues: Iterable[DialogueInput],
        speaker_mapping: Mapping[str, SpeakerInput],
        episode_info: EpisodeInput = None,
    ) -> dict[str, Any]:
        """Build the queue and output directory for a new job."""

        if self._running or self.is_processing:
            raise ProcessingStateError("A job is already in progress on this engine")

        mapping = coerce_speaker_mapping(speaker_mapping)
        queue, episode_dir = await self._builder.build(dialogues, mapping, episode_info)

        if not queue:
            with suppress(OSError):
                await asyncio.to_thread(episode_dir.rmdir)
            raise ProcessingConfigurationError(
                "No work items were produced; check that speakers are mapped to voices"
            )

        self.queue = queue
        self.processed = []
        self.failed = []
        self._retry_backlog = []
        self.current_index = 0
        self.is_processing = False
        self.is_paused = False
        self.start_time = None
        self.episode_dir = episode_dir
        self._state = JobState.IDLE

        await self._artifacts.write_speaker_mapping(
            episode_dir,
            {speaker: voice.model_dump(exclude_none=True) for speaker, voice in mapping.items()},
        )

        logger.info(
            "Processing queue initialized with %d items in %s", len(queue), episode_dir
        )
        return {
            "totalItems": len(queue),
            "episodeDir": str(episode_dir),
            "speakers": list(mapping.keys()),
        }

    async def start(self) -> None:
        """Process the queue from ``current_index`` until done, paused or cancelled."""

        if self._running:
            logger.warning("Processing already in progress")
            return
        if self.episode_dir is None or not self.queue:
            raise ProcessingStateError("initialize() must succeed before start()")
        if self._state in _TERMINAL_STATES:
            logger.warning("Job already %s; start() ignored", self._state.value)
            return

        self.is_processing = True
        self.is_paused = False
        self._state = JobState.RUNNING
        if self.start_time is None:
            self.start_time = self._clock()

        logger.info("Starting TTS processing at item %d", self.current_index + 1)
        await self.events.emit(
            ProcessingEvent.START,
            {
                "totalItems": len(self.queue),
                "currentIndex": self.current_index,
                "timestamp": _utc_now_iso(),
            },
        )
        await self._run()

    def pause(self) -> None:
        """Stop after the in-flight item; no-op unless a run is active."""

        if not self.is_processing or self.is_paused:
            return

        self.is_paused = True
        self._state = JobState.PAUSED
        logger.info("Processing paused")
        self.events.emit_nowait(
            ProcessingEvent.PAUSED,
            {
                "currentIndex": self.current_index,
                "processed": len(self.processed),
                "remaining": len(self.queue) - self.current_index,
            },
        )

    async def resume(self) -> None:
        """Continue a paused job from ``current_index``."""

        if not self.is_paused:
            return

        self.unpause()
        # The loop may not have reached its next check yet; it simply carries on.
        if self._running:
            return
        await self.start()

    def unpause(self) -> None:
        """Clear the pause flag without restarting the loop."""

        if not self.is_paused:
            return

        logger.info("Resuming processing")
        self.is_paused = False
        self._state = JobState.RUNNING
        self.events.emit_nowait(
            ProcessingEvent.RESUMED, {"currentIndex": self.current_index}
        )

    def cancel(self) -> None:
        """Stop the job for good once the in-flight item finishes."""

        self.is_processing = False
        self.is_paused = False
        if self._state in _TERMINAL_STATES:
            return

        self._state = JobState.CANCELLED
        logger.warning("Processing cancelled by user")
        self.events.emit_nowait(
            ProcessingEvent.CANCELLED,
            {
                "processed": len(self.processed),
                "failed": len(self.failed),
                "remaining": len(self.queue) - len(self.processed) - len(self.failed),
            },
        )

    async def retry_failed(self) -> None:
        """Reset failed items to pending and run them again in original order."""

        if self._running:
            raise ProcessingStateError("Cannot retry while processing is running")
        if self._state in {JobState.PAUSED, JobState.CANCELLED, JobState.ABORTED}:
            raise ProcessingStateError(f"Cannot retry a {self._state.value} job")
        if not self.failed:
            logger.info("No failed items to retry")
            return

        items = sorted(self.failed, key=self.queue.index)
        self.failed = []
        for item in items:
            item.reset_for_retry()
        self._retry_backlog.extend(items)

        logger.info("Retrying %d failed items", len(items))
        self.is_processing = True
        self.is_paused = False
        self._state = JobState.RUNNING
        if self.start_time is None:
            self.start_time = self._clock()
        await self._run()

    # ------------------------------------------------------------------
    # Processing loop
    # ------------------------------------------------------------------

    def _peek_next(self) -> Optional[WorkItem]:
        if self.current_index < len(self.queue):
            return self.queue[self.current_index]
        if self._retry_backlog:
            return self._retry_backlog[0]
        return None

    def _advance(self, item: WorkItem) -> None:
        if self.current_index < len(self.queue) and self.queue[self.current_index] is item:
            self.current_index += 1
        elif self._retry_backlog and self._retry_backlog[0] is item:
            self._retry_backlog.pop(0)

    def _should_continue(self) -> bool:
        return self.is_processing and not self.is_paused

    async def _run(self) -> None:
        self._running = True
        try:
            while True:
                if not self._should_continue():
                    return
                item = self._peek_next()
                if item is None:
                    break

                await self._process_item(item)
                self._advance(item)

                if self._peek_next() is not None and self._should_continue():
                    await self._sleep(self.item_delay)
        except Exception as exc:
            self.is_processing = False
            self.is_paused = False
            self._state = JobState.ABORTED
            in_flight = self._current_item
            if in_flight is not None and in_flight.status is ItemStatus.PROCESSING:
                in_flight.status = ItemStatus.FAILED
                in_flight.error = str(exc)
                self.failed.append(in_flight)
            logger.exception("Processing aborted")
            raise
        finally:
            self._running = False
            self._current_item = None

        self.is_processing = False
        self._state = JobState.COMPLETED
        try:
            await self._on_processing_complete()
        except OSError:
            self._state = JobState.ABORTED
            logger.exception("Could not write job metadata")
            raise

    def _count_attempt(self, item: WorkItem) -> None:
        item.attempts += 1

    async def _process_item(self, item: WorkItem) -> None:
        assert self.episode_dir is not None
        item.status = ItemStatus.PROCESSING
        self._current_item = item
        started = self._clock()

        logger.debug("Processing item %s", item.id)
        await self.events.emit(
            ProcessingEvent.ITEM_START,
            {
                "item": item.to_dict(),
                "queuePosition": self.queue.index(item) + 1,
                "totalItems": len(self.queue),
            },
        )

        try:
            audio = await self._synthesis.synthesize(
                item.voice_id,
                item.text,
                item.voice_settings,
                label=item.id,
                on_attempt=lambda _attempt: self._count_attempt(item),
            )
        except SynthesisError as exc:
            item.status = ItemStatus.FAILED
            item.error = str(exc)
            self.failed.append(item)
            self._current_item = None
            logger.error("Failed %s after %d attempts: %s", item.id, item.attempts, exc)
            await self.events.emit(
                ProcessingEvent.ITEM_ERROR,
                {
                    "item": item.to_dict(),
                    "error": item.error,
                    "willRetry": item.attempts < self.retry_ceiling,
                },
            )
            return

        filename = build_audio_filename(item.id)
        await self._artifacts.write_audio(self.episode_dir, filename, audio)

        item.status = ItemStatus.COMPLETED
        item.filename = filename
        item.audio_size = len(audio)
        item.processing_time = int((self._clock() - started) * 1000)
        item.error = None
        self.processed.append(item)
        self._current_item = None

        progress = self._progress()
        logger.info(
            "Processed %s in %dms (%d%%)",
            item.id,
            item.processing_time,
            progress["percentage"],
        )
        await self.events.emit(
            ProcessingEvent.ITEM_COMPLETE, {"item": item.to_dict(), "progress": progress}
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def build_metadata(self, processing_time: int, stats: ProcessingStats) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        if self.session_id:
            metadata["sessionId"] = self.session_id
        metadata.update(
            {
                "episode": self.episode_dir.name if self.episode_dir else "Unknown",
                "processedAt": _utc_now_iso(),
                "processingTime": processing_time,
                "stats": stats.to_dict(),
                "items": {
                    "processed": [
                        {
                            "id": item.id,
                            "speaker": item.speaker,
                            "filename": item.filename,
                            "characterCount": item.character_count,
                            "processingTime": item.processing_time,
                            "audioSize": item.audio_size,
                        }
                        for item in self.processed
                    ],
                    "failed": [
                        {
                            "id": item.id,
                            "speaker": item.speaker,
                            "error": item.error,
                            "attempts": item.attempts,
                            "characterCount": item.character_count,
                        }
                        for item in self.failed
                    ],
                },
            }
        )
        return metadata

    async def _on_processing_complete(self) -> None:
        assert self.episode_dir is not None
        processing_time = self._elapsed_ms()
        stats = self.get_stats()
        metadata = self.build_metadata(processing_time, stats)

        await self._artifacts.write_metadata(self.episode_dir, metadata)

        logger.info(
            "Processing complete! %d succeeded, %d failed", stats.completed, stats.failed
        )
        await self.events.emit(
            ProcessingEvent.COMPLETE,
            {
                "stats": stats.to_dict(),
                "processingTime": processing_time,
                "episodeDir": str(self.episode_dir),
                "metadata": metadata,
            },
        )

    def cleanup(self) -> None:
        """Drop listeners and job state."""

        self.events.clear()
        self.queue = []
        self.processed = []
        self.failed = []
        self._retry_backlog = []
        self.current_index = 0
        self.is_processing = False
        self.is_paused = False


__all__ = ["DEFAULT_ITEM_DELAY", "JobState", "ProcessingEngine"]
