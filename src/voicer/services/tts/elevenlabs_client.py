"""Thin async client for the ElevenLabs text-to-speech API."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import httpx

from voicer.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Request defaults used when a speaker mapping leaves voice settings empty
DEFAULT_VOICE_SETTINGS: dict[str, Any] = {
    "stability": 0.75,
    "similarity_boost": 0.75,
    "style": 0.5,
    "use_speaker_boost": True,
}

# Keys of a settings mapping that travel outside the ``voice_settings`` body
_REQUEST_LEVEL_KEYS = ("model_id", "model", "language_code", "output_format")


class ElevenLabsError(RuntimeError):
    """Raised when a single ElevenLabs API call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ElevenLabsClient:
    """
    Client for ElevenLabs speech synthesis and voice listing.

    One ``httpx.AsyncClient`` is shared across calls for connection pooling;
    call ``aclose()`` on shutdown. The voice list is cached for
    ``voice_cache_seconds`` and an expired cache is served when the API fails.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.api_key = (
            self._settings.elevenlabs_api_key.get_secret_value()
            if self._settings.elevenlabs_api_key
            else None
        )
        self.base_url = str(self._settings.elevenlabs_base_url).rstrip("/")
        self._http_client = http_client
        self._owns_client = http_client is None
        self._voice_cache: list[dict[str, Any]] | None = None
        self._voice_cache_expiry = 0.0

        if not self.api_key:
            logger.warning("ELEVENLABS_API_KEY is not configured; synthesis will fail")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._settings.request_timeout)
            logger.info("Created httpx.AsyncClient for ElevenLabs")
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("Closed ElevenLabs HTTP client")

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ElevenLabsError("ElevenLabs API key not configured")
        return {"xi-api-key": self.api_key, "Content-Type": "application/json"}

    def build_request(
        self, text: str, settings: Mapping[str, Any] | None
    ) -> tuple[dict[str, Any], dict[str, str]]:
        """Split a voice settings mapping into the JSON body and query params."""
        settings = dict(settings or {})
        model_id = settings.get("model_id") or settings.get("model") or self._settings.elevenlabs_model
        output_format = settings.get("output_format") or self._settings.default_output_format

        voice_settings = {
            key: value
            for key, value in settings.items()
            if key not in _REQUEST_LEVEL_KEYS and value is not None
        }
        payload: dict[str, Any] = {
            "text": text,
            "model_id": model_id,
            "voice_settings": voice_settings or dict(DEFAULT_VOICE_SETTINGS),
        }
        if settings.get("language_code"):
            payload["language_code"] = settings["language_code"]
        return payload, {"output_format": output_format}

    async def text_to_speech(
        self, voice_id: str, text: str, settings: Mapping[str, Any] | None = None
    ) -> bytes:
        """Synthesize ``text`` with ``voice_id`` and return the encoded audio."""
        headers = self._headers()
        payload, params = self.build_request(text, settings)
        url = f"{self.base_url}/text-to-speech/{voice_id}"

        try:
            response = await self._client().post(
                url, params=params, headers=headers, json=payload
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise ElevenLabsError(
                f"ElevenLabs returned HTTP {status} for voice {voice_id}",
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            raise ElevenLabsError(f"ElevenLabs request failed: {exc}") from exc

        audio = response.content
        logger.debug(
            "ElevenLabs synthesized %d bytes for voice %s (%d chars)",
            len(audio),
            voice_id,
            len(text),
        )
        return audio

    async def list_voices(self, *, force_refresh: bool = False) -> list[dict[str, Any]]:
        """Return available voices, premade first then alphabetical."""
        now = time.monotonic()
        if (
            not force_refresh
            and self._voice_cache is not None
            and self._voice_cache_expiry > now
        ):
            return self._voice_cache

        try:
            response = await self._client().get(
                f"{self.base_url}/voices", headers=self._headers()
            )
            response.raise_for_status()
            raw_voices = response.json().get("voices", [])
        except (httpx.HTTPError, ElevenLabsError, ValueError) as exc:
            if self._voice_cache is not None:
                logger.warning("Voice listing failed, serving expired cache: %s", exc)
                return self._voice_cache
            if isinstance(exc, ElevenLabsError):
                raise
            raise ElevenLabsError(f"Failed to fetch voices: {exc}") from exc

        voices = [_normalize_voice(voice) for voice in raw_voices if voice.get("voice_id")]
        voices.sort(key=lambda v: (v["category"] != "premade", v["name"].lower()))

        self._voice_cache = voices
        self._voice_cache_expiry = now + self._settings.voice_cache_seconds
        logger.info("Fetched %d voices from ElevenLabs", len(voices))
        return voices


def _normalize_voice(voice: Mapping[str, Any]) -> dict[str, Any]:
    labels = voice.get("labels") or {}
    return {
        "voice_id": voice["voice_id"],
        "name": voice.get("name") or voice["voice_id"],
        "category": voice.get("category") or "custom",
        "description": voice.get("description") or "",
        "preview_url": voice.get("preview_url"),
        "labels": labels,
        "settings": voice.get("settings") or dict(DEFAULT_VOICE_SETTINGS),
        "gender": labels.get("gender", "unknown"),
        "accent": labels.get("accent", "unknown"),
    }


__all__ = ["DEFAULT_VOICE_SETTINGS", "ElevenLabsClient", "ElevenLabsError"]
