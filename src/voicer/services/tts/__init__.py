"""
TTS (Text-to-Speech) Services Package.

This package contains the synthesis side of batch episode processing:

- chunk_splitter: Splits over-long dialogue lines into speakable chunks
- elevenlabs_client: HTTP boundary to the ElevenLabs API
- synthesis_client: Retry/backoff wrapper around one synthesis call

Architecture Overview:

    ┌──────────────┐     ┌─────────────────┐     ┌──────────────────┐
    │ WorkItem     │────▶│ SynthesisClient │────▶│ ElevenLabsClient │
    └──────────────┘     │ (retry/backoff) │     │ (httpx)          │
                         └─────────────────┘     └──────────────────┘
                                  │
                                  ▼
                             audio bytes
"""

from .chunk_splitter import ChunkSplitter, split_into_chunks
from .elevenlabs_client import ElevenLabsClient, ElevenLabsError
from .synthesis_client import SpeechBackend, SynthesisClient, SynthesisError

__all__ = [
    "ChunkSplitter",
    "ElevenLabsClient",
    "ElevenLabsError",
    "SpeechBackend",
    "SynthesisClient",
    "SynthesisError",
    "split_into_chunks",
]
