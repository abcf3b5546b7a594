"""Domain models for batch synthesis jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True)
class WorkItem:
    """One chunk of dialogue text to be synthesized into one audio file."""

    id: str
    speaker: str
    text: str
    original_index: int
    voice_id: str
    voice_settings: dict[str, Any] = field(default_factory=dict)
    chunk_index: int = 0
    total_chunks: int = 1
    status: ItemStatus = ItemStatus.PENDING
    attempts: int = 0
    filename: Optional[str] = None
    audio_size: Optional[int] = None
    processing_time: Optional[int] = None
    error: Optional[str] = None

    @property
    def character_count(self) -> int:
        return len(self.text)

    def reset_for_retry(self) -> None:
        """Return a failed item to the pending state with a fresh attempt count."""

        self.status = ItemStatus.PENDING
        self.attempts = 0
        self.error = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used in events and metadata."""

        payload: dict[str, Any] = {
            "id": self.id,
            "speaker": self.speaker,
            "text": self.text,
            "originalIndex": self.original_index,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "voiceId": self.voice_id,
            "voiceSettings": dict(self.voice_settings),
            "status": self.status.value,
            "attempts": self.attempts,
            "characterCount": self.character_count,
        }
        if self.filename is not None:
            payload["filename"] = self.filename
        if self.audio_size is not None:
            payload["audioSize"] = self.audio_size
        if self.processing_time is not None:
            payload["processingTime"] = self.processing_time
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class ProcessingStats:
    """Point-in-time snapshot of job progress."""

    total: int
    completed: int
    failed: int
    remaining: int
    percentage: int
    elapsed: int
    estimated_remaining: int
    avg_time_per_item: float
    is_processing: bool
    is_paused: bool
    current_item: Optional[WorkItem] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "remaining": self.remaining,
            "percentage": self.percentage,
            "elapsed": self.elapsed,
            "estimatedRemaining": self.estimated_remaining,
            "avgTimePerItem": self.avg_time_per_item,
            "isProcessing": self.is_processing,
            "isPaused": self.is_paused,
            "currentItem": self.current_item.to_dict() if self.current_item else None,
        }


__all__ = ["ItemStatus", "ProcessingStats", "WorkItem"]
