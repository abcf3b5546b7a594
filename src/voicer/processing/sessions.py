"""Session registry that runs processing engines as background tasks."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Iterable, Mapping, Optional

from voicer.config import Settings
from voicer.services.tts.synthesis_client import SpeechBackend

from .engine import JobState, ProcessingEngine
from .errors import ProcessingStateError
from .events import ProcessingEvent
from .queue_builder import DialogueInput, EpisodeInput, SpeakerInput

logger = logging.getLogger(__name__)

EngineFactory = Callable[[str], ProcessingEngine]


class SessionNotFoundError(KeyError):
    """Raised when no processing session exists for an id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"No processing session found: {self.session_id}"


@dataclass
class ProcessingSession:
    session_id: str
    engine: ProcessingEngine
    queue_info: dict[str, Any]
    created_at: float = field(default_factory=time.time)
    task: Optional[asyncio.Task[None]] = None
    error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.task is not None and not self.task.done()


class ProcessingSessionManager:
    """
    Keep one engine per session id and drive it without blocking the caller.

    ``start``, ``resume`` and ``retry`` schedule the engine's loop as an
    ``asyncio.Task`` and return immediately; progress is read back with
    ``get()``. Finished sessions stay pollable until ``cleanup_after``
    seconds have passed, then they are evicted.
    """

    def __init__(
        self,
        settings: Settings,
        backend: SpeechBackend,
        *,
        engine_factory: Optional[EngineFactory] = None,
        cleanup_after: Optional[float] = None,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._engine_factory = engine_factory or self._default_engine
        self._cleanup_after = (
            cleanup_after
            if cleanup_after is not None
            else settings.session_cleanup_hours * 3600
        )
        self._sessions: dict[str, ProcessingSession] = {}
        self._evictions: dict[str, asyncio.Task[None]] = {}

    def _default_engine(self, session_id: str) -> ProcessingEngine:
        return ProcessingEngine.from_settings(
            self._settings, self._backend, session_id=session_id
        )

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> ProcessingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def start_session(
        self,
        session_id: str,
        dialogues: Iterable[DialogueInput],
        speaker_mapping: Mapping[str, SpeakerInput],
        episode_info: EpisodeInput = None,
    ) -> dict[str, Any]:
        """Build a job for ``session_id`` and start processing in the background."""

        existing = self._sessions.get(session_id)
        if existing is not None and (
            existing.is_active
            or existing.engine.state in {JobState.RUNNING, JobState.PAUSED}
        ):
            raise ProcessingStateError(f"Session {session_id} already has a job in progress")
        self._discard(session_id)

        engine = self._engine_factory(session_id)
        queue_info = await engine.initialize(dialogues, speaker_mapping, episode_info)

        session = ProcessingSession(session_id=session_id, engine=engine, queue_info=queue_info)
        self._sessions[session_id] = session
        engine.on(ProcessingEvent.COMPLETE, lambda _payload: self._schedule_eviction(session_id))

        self._launch(session, engine.start())
        logger.info(
            "Session %s started with %d items", session_id, queue_info["totalItems"]
        )
        return queue_info

    def pause(self, session_id: str) -> None:
        self.get(session_id).engine.pause()

    def resume(self, session_id: str) -> None:
        session = self.get(session_id)
        if not session.engine.is_paused:
            raise ProcessingStateError(f"Session {session_id} is not paused")
        if session.engine.is_running:
            # The original task is still finishing its in-flight item.
            session.engine.unpause()
            return
        self._launch(session, session.engine.resume())

    def cancel(self, session_id: str) -> None:
        session = self.get(session_id)
        session.engine.cancel()
        self._sessions.pop(session_id, None)
        eviction = self._evictions.pop(session_id, None)
        if eviction is not None:
            eviction.cancel()
        logger.info("Session %s cancelled and removed", session_id)

    def retry(self, session_id: str) -> int:
        """Schedule a retry pass; returns the number of items being retried."""

        session = self.get(session_id)
        engine = session.engine
        if session.is_active or engine.is_running:
            raise ProcessingStateError(f"Session {session_id} is still processing")
        if engine.state in {JobState.PAUSED, JobState.CANCELLED, JobState.ABORTED}:
            raise ProcessingStateError(
                f"Session {session_id} is {engine.state.value} and cannot be retried"
            )

        count = len(engine.failed)
        if count == 0:
            return 0

        eviction = self._evictions.pop(session_id, None)
        if eviction is not None:
            eviction.cancel()
        session.error = None
        self._launch(session, engine.retry_failed())
        return count

    def _launch(self, session: ProcessingSession, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro, name=f"processing-{session.session_id}")
        session.task = task

        def _on_done(done: asyncio.Task[None]) -> None:
            if done.cancelled():
                return
            exc = done.exception()
            if exc is not None:
                session.error = str(exc)
                logger.error(
                    "Processing task for session %s failed",
                    session.session_id,
                    exc_info=exc,
                )
                self._schedule_eviction(session.session_id)

        task.add_done_callback(_on_done)

    def _schedule_eviction(self, session_id: str) -> None:
        previous = self._evictions.pop(session_id, None)
        if previous is not None:
            previous.cancel()

        async def _evict() -> None:
            await asyncio.sleep(self._cleanup_after)
            self._sessions.pop(session_id, None)
            self._evictions.pop(session_id, None)
            logger.info("Session %s evicted", session_id)

        self._evictions[session_id] = asyncio.get_running_loop().create_task(_evict())

    def _discard(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        eviction = self._evictions.pop(session_id, None)
        if eviction is not None:
            eviction.cancel()
        if session is not None:
            session.engine.cleanup()

    async def shutdown(self) -> None:
        """Cancel running jobs and pending evictions."""

        tasks: list[asyncio.Task[None]] = []
        for session in self._sessions.values():
            session.engine.cancel()
            if session.task is not None and not session.task.done():
                session.task.cancel()
                tasks.append(session.task)
        tasks.extend(self._evictions.values())
        for task in self._evictions.values():
            task.cancel()

        for task in tasks:
            with suppress(asyncio.CancelledError, Exception):
                await task

        self._sessions.clear()
        self._evictions.clear()
        logger.info("Processing sessions shut down")


__all__ = [
    "ProcessingSession",
    "ProcessingSessionManager",
    "SessionNotFoundError",
]
