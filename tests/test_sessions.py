import asyncio

import pytest

from voicer.config import Settings
from voicer.processing import (
    ArtifactWriter,
    JobState,
    ProcessingEngine,
    ProcessingSessionManager,
    ProcessingStateError,
    QueueBuilder,
    SessionNotFoundError,
)
from voicer.services.tts import SynthesisClient

from conftest import FakeBackend, SleepRecorder


class BlockingBackend(FakeBackend):
    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def text_to_speech(self, voice_id, text, settings=None):
        await self.release.wait()
        return await super().text_to_speech(voice_id, text, settings)


def make_manager(tmp_path, backend, *, cleanup_after=3600.0, writer_cls=ArtifactWriter):
    def factory(session_id: str) -> ProcessingEngine:
        artifacts = writer_cls(tmp_path)
        return ProcessingEngine(
            SynthesisClient(backend, max_attempts=2, sleep=SleepRecorder()),
            artifacts,
            queue_builder=QueueBuilder(artifacts),
            item_delay=0,
            session_id=session_id,
            sleep=SleepRecorder(),
        )

    return ProcessingSessionManager(
        Settings(output_dir=tmp_path),
        backend,
        engine_factory=factory,
        cleanup_after=cleanup_after,
    )


async def settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_start_session_runs_in_background(tmp_path, dialogues, speaker_mapping):
    manager = make_manager(tmp_path, FakeBackend())

    info = await manager.start_session("s1", dialogues, speaker_mapping, {"name": "Ep"})
    session = manager.get("s1")
    await session.task

    assert info["totalItems"] == 4
    assert session.engine.state is JobState.COMPLETED
    assert session.engine.session_id == "s1"
    assert "s1" in manager
    await manager.shutdown()


@pytest.mark.asyncio
async def test_second_start_while_running_is_rejected(tmp_path, dialogues, speaker_mapping):
    backend = BlockingBackend()
    manager = make_manager(tmp_path, backend)

    await manager.start_session("s1", dialogues, speaker_mapping)
    await settle()

    with pytest.raises(ProcessingStateError):
        await manager.start_session("s1", dialogues, speaker_mapping)
    with pytest.raises(ProcessingStateError):
        manager.retry("s1")

    backend.release.set()
    await manager.get("s1").task
    await manager.shutdown()


@pytest.mark.asyncio
async def test_pause_resume_and_cancel(tmp_path, dialogues, speaker_mapping):
    backend = BlockingBackend()
    manager = make_manager(tmp_path, backend)
    await manager.start_session("s1", dialogues, speaker_mapping)
    await settle()

    manager.pause("s1")
    backend.release.set()
    session = manager.get("s1")
    await session.task
    assert session.engine.state is JobState.PAUSED
    assert len(session.engine.processed) == 1

    manager.resume("s1")
    await session.task
    assert session.engine.state is JobState.COMPLETED

    with pytest.raises(ProcessingStateError):
        manager.resume("s1")

    manager.cancel("s1")
    assert "s1" not in manager
    with pytest.raises(SessionNotFoundError):
        manager.get("s1")


@pytest.mark.asyncio
async def test_retry_schedules_failed_items(tmp_path, dialogues, speaker_mapping):
    backend = FakeBackend(failures={"Short line.": 2})
    manager = make_manager(tmp_path, backend)
    await manager.start_session("s1", dialogues, speaker_mapping)
    session = manager.get("s1")
    await session.task
    assert len(session.engine.failed) == 1

    assert manager.retry("s1") == 1
    await session.task

    assert session.engine.failed == []
    assert manager.retry("s1") == 0
    await manager.shutdown()


@pytest.mark.asyncio
async def test_completed_session_is_evicted(tmp_path, dialogues, speaker_mapping):
    manager = make_manager(tmp_path, FakeBackend(), cleanup_after=0)
    await manager.start_session("s1", dialogues, speaker_mapping)
    await manager.get("s1").task
    await settle()

    assert "s1" not in manager


class FailingWriter(ArtifactWriter):
    async def write_audio(self, episode_dir, filename, audio):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_background_failure_is_recorded(tmp_path, dialogues, speaker_mapping, caplog):
    manager = make_manager(tmp_path, FakeBackend(), writer_cls=FailingWriter)
    await manager.start_session("s1", dialogues, speaker_mapping)
    session = manager.get("s1")

    with pytest.raises(OSError):
        await session.task
    await settle()

    assert session.error == "disk full"
    assert session.engine.state is JobState.ABORTED
    assert "Processing task for session s1 failed" in caplog.text
    await manager.shutdown()


@pytest.mark.asyncio
async def test_unknown_session_raises(tmp_path):
    manager = make_manager(tmp_path, FakeBackend())

    with pytest.raises(SessionNotFoundError):
        manager.pause("missing")
    with pytest.raises(SessionNotFoundError):
        manager.cancel("missing")


@pytest.mark.asyncio
async def test_shutdown_cancels_running_tasks(tmp_path, dialogues, speaker_mapping):
    manager = make_manager(tmp_path, BlockingBackend())
    await manager.start_session("s1", dialogues, speaker_mapping)
    task = manager.get("s1").task
    await settle()

    await manager.shutdown()

    assert task.done()
    assert len(manager) == 0


@pytest.mark.asyncio
async def test_resume_during_in_flight_item_keeps_original_task(
    tmp_path, dialogues, speaker_mapping
):
    backend = BlockingBackend()
    manager = make_manager(tmp_path, backend)
    await manager.start_session("s1", dialogues, speaker_mapping)
    session = manager.get("s1")
    task = session.task
    await settle()

    manager.pause("s1")
    manager.resume("s1")

    assert session.task is task
    assert session.engine.state is JobState.RUNNING
    backend.release.set()
    await task
    assert session.engine.state is JobState.COMPLETED
    assert len(backend.calls) == 4
    await manager.shutdown()


@pytest.mark.asyncio
async def test_retry_while_paused_is_rejected(tmp_path, dialogues, speaker_mapping):
    backend = FakeBackend(failures={"Short line.": -1})
    manager = make_manager(tmp_path, backend)
    await manager.start_session("s1", dialogues, speaker_mapping)
    session = manager.get("s1")
    session.engine.on("item:error", lambda payload: session.engine.pause())
    await session.task

    assert session.engine.state is JobState.PAUSED
    with pytest.raises(ProcessingStateError):
        manager.retry("s1")
    await manager.shutdown()
