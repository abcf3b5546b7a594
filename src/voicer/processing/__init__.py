"""Batch processing: queue building, the engine and session hosting."""

from .artifacts import ArtifactWriter, EpisodeSummary
from .engine import JobState, ProcessingEngine
from .errors import ProcessingConfigurationError, ProcessingError, ProcessingStateError
from .events import EventBus, ProcessingEvent
from .models import ItemStatus, ProcessingStats, WorkItem
from .queue_builder import QueueBuilder
from .sessions import ProcessingSession, ProcessingSessionManager, SessionNotFoundError

__all__ = [
    "ArtifactWriter",
    "EpisodeSummary",
    "EventBus",
    "ItemStatus",
    "JobState",
    "ProcessingConfigurationError",
    "ProcessingEngine",
    "ProcessingError",
    "ProcessingEvent",
    "ProcessingSession",
    "ProcessingSessionManager",
    "ProcessingStateError",
    "ProcessingStats",
    "QueueBuilder",
    "SessionNotFoundError",
    "WorkItem",
]
