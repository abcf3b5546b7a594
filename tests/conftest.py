import pathlib
import sys
from typing import Any, Callable, Mapping, Optional

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from voicer.processing import ArtifactWriter, ProcessingEngine, QueueBuilder  # noqa: E402
from voicer.services.tts import SynthesisClient  # noqa: E402

FAKE_AUDIO = b"ID3\x03\x00fake-mp3"


class FakeBackend:
    """Speech backend that records calls and fails on request.

    ``failures`` maps a text to how many calls should fail before it
    succeeds; ``-1`` fails forever.
    """

    def __init__(
        self,
        failures: Optional[Mapping[str, int]] = None,
        audio: bytes = FAKE_AUDIO,
    ) -> None:
        self.failures = dict(failures or {})
        self.audio = audio
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    async def text_to_speech(
        self, voice_id: str, text: str, settings: Optional[Mapping[str, Any]] = None
    ) -> bytes:
        self.calls.append((voice_id, text, dict(settings or {})))
        remaining = self.failures.get(text, 0)
        if remaining:
            if remaining > 0:
                self.failures[text] = remaining - 1
            raise RuntimeError(f"upstream rejected {text[:12]!r}")
        return self.audio

    def texts(self) -> list[str]:
        return [text for _, text, _ in self.calls]


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "outputs"


@pytest.fixture
def make_engine(output_dir: pathlib.Path) -> Callable[..., ProcessingEngine]:
    def _make(
        backend: FakeBackend,
        *,
        max_attempts: int = 3,
        max_chunk_chars: int = 1000,
        clock: Optional[FakeClock] = None,
        retry_sleep: Optional[SleepRecorder] = None,
        item_sleep: Optional[SleepRecorder] = None,
        session_id: Optional[str] = None,
        artifacts: Optional[ArtifactWriter] = None,
    ) -> ProcessingEngine:
        artifacts = artifacts or ArtifactWriter(output_dir)
        synthesis = SynthesisClient(
            backend,
            max_attempts=max_attempts,
            base_delay=1.0,
            sleep=retry_sleep or SleepRecorder(),
        )
        return ProcessingEngine(
            synthesis,
            artifacts,
            queue_builder=QueueBuilder(artifacts, max_chunk_chars=max_chunk_chars),
            item_delay=0.1,
            session_id=session_id,
            clock=clock or FakeClock(),
            sleep=item_sleep or SleepRecorder(),
        )

    return _make


@pytest.fixture
def dialogues() -> list[dict[str, Any]]:
    return [
        {"speaker": "NARRATOR", "text": "Short line.", "index": 0},
        {"speaker": "HERO", "text": "A" * 1500, "index": 1},
        {"speaker": "NARRATOR", "text": "Another short line.", "index": 2},
    ]


@pytest.fixture
def speaker_mapping() -> dict[str, Any]:
    return {
        "NARRATOR": {"voiceId": "voice-narrator", "settings": {"stability": 0.5}},
        "HERO": {"voiceId": "voice-hero", "settings": {}},
    }
