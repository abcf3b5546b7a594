"""Schemas for batch processing requests and responses."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class VoiceSettings(BaseModel):
    """Synthesis parameters for one voice, passed through to the speech API."""

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    stability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    similarity_boost: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("similarity_boost", "similarityBoost", "similarity"),
    )
    style: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    use_speaker_boost: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("use_speaker_boost", "useSpeakerBoost", "speaker_boost"),
    )
    model_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("model_id", "modelId", "model"),
    )
    language_code: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("language_code", "languageCode", "language"),
    )
    output_format: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("output_format", "outputFormat"),
    )

    def as_request_settings(self) -> dict[str, Any]:
        """Return the settings as a plain mapping without unset values."""
        return self.model_dump(exclude_none=True)


class SpeakerVoice(BaseModel):
    """Voice assignment for one script speaker."""

    voice_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("voice_id", "voiceId"),
    )
    settings: VoiceSettings = Field(default_factory=VoiceSettings)


class DialogueLine(BaseModel):
    """One parsed line of the script."""

    model_config = ConfigDict(extra="ignore")

    speaker: str = Field(..., min_length=1)
    text: str = ""
    cleaned_text: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("cleaned_text", "cleanedText"),
    )
    index: Optional[int] = Field(default=None, ge=0)

    @property
    def speech_text(self) -> str:
        """Text to synthesize: the stage-direction-free text when available."""
        if self.cleaned_text is not None:
            return self.cleaned_text
        return self.text


class EpisodeInfo(BaseModel):
    """Episode details used for naming the output directory."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("name", "episodeName", "title"),
    )


class StartProcessingRequest(BaseModel):
    """Payload for starting a processing session."""

    session_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("session_id", "sessionId"),
    )
    dialogues: list[DialogueLine] = Field(default_factory=list)
    speaker_mapping: dict[str, SpeakerVoice] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("speaker_mapping", "speakerMapping"),
    )
    episode_info: EpisodeInfo = Field(
        default_factory=EpisodeInfo,
        validation_alias=AliasChoices("episode_info", "episodeInfo"),
    )


class QueueInfo(BaseModel):
    totalItems: int
    episodeDir: str
    speakers: list[str] = Field(default_factory=list)


class StartProcessingResponse(BaseModel):
    success: bool = True
    message: str
    sessionId: str
    queueInfo: QueueInfo


class ProcessingStatusResponse(BaseModel):
    success: bool = True
    sessionId: str
    state: str
    stats: dict[str, Any]
    error: Optional[str] = None


class ProcessingResultsResponse(BaseModel):
    success: bool = True
    sessionId: str
    complete: bool
    stats: dict[str, Any]
    episodeDir: str
    downloadReady: bool


class ActionResponse(BaseModel):
    success: bool = True
    message: str


class EpisodeSummaryResponse(BaseModel):
    name: str
    path: str
    created: str
    modified: str
    metadata: Optional[dict[str, Any]] = None


class EpisodeListResponse(BaseModel):
    episodes: list[EpisodeSummaryResponse] = Field(default_factory=list)


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
