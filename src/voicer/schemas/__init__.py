"""Pydantic schemas for the HTTP API."""

from .processing import (
    ActionResponse,
    DialogueLine,
    EpisodeInfo,
    EpisodeListResponse,
    EpisodeSummaryResponse,
    ProcessingResultsResponse,
    ProcessingStatusResponse,
    QueueInfo,
    SpeakerVoice,
    StartProcessingRequest,
    StartProcessingResponse,
    VoiceSettings,
)

__all__ = [
    "ActionResponse",
    "DialogueLine",
    "EpisodeInfo",
    "EpisodeListResponse",
    "EpisodeSummaryResponse",
    "ProcessingResultsResponse",
    "ProcessingStatusResponse",
    "QueueInfo",
    "SpeakerVoice",
    "StartProcessingRequest",
    "StartProcessingResponse",
    "VoiceSettings",
]
