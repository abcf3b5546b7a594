"""Retrying wrapper around a single text-to-speech call."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


class SpeechBackend(Protocol):
    """Anything that turns (voice, text, settings) into audio bytes."""

    async def text_to_speech(
        self, voice_id: str, text: str, settings: Mapping[str, Any] | None = None
    ) -> bytes: ...


class SynthesisError(RuntimeError):
    """Raised when every synthesis attempt for one text has failed."""

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class SynthesisClient:
    """
    Execute one text-to-speech request with exponential backoff.

    Attempt ``n`` that fails is followed by a wait of
    ``base_delay * 2 ** (n - 1)`` seconds, except after the final attempt.
    All errors from the backend are treated as retryable; once the ceiling is
    reached the last error is raised as the cause of a ``SynthesisError``.
    """

    def __init__(
        self,
        backend: SpeechBackend,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._backend = backend
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1))

    async def synthesize(
        self,
        voice_id: str,
        text: str,
        settings: Mapping[str, Any] | None = None,
        *,
        label: str = "",
        on_attempt: Optional[Callable[[int], None]] = None,
    ) -> bytes:
        """Return synthesized audio, retrying up to ``max_attempts`` times.

        ``on_attempt`` is called with the attempt number before each call so
        the caller can keep its own attempt counter current.
        """
        label = label or voice_id
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            if on_attempt is not None:
                on_attempt(attempt)
            try:
                return await self._backend.text_to_speech(voice_id, text, settings)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Attempt %d/%d failed for %s: %s",
                    attempt,
                    self.max_attempts,
                    label,
                    exc,
                )
                if attempt < self.max_attempts:
                    await self._sleep(self.backoff_delay(attempt))

        raise SynthesisError(
            str(last_error) or last_error.__class__.__name__,
            attempts=self.max_attempts,
        ) from last_error


__all__ = [
    "DEFAULT_BASE_DELAY",
    "DEFAULT_MAX_ATTEMPTS",
    "SpeechBackend",
    "SynthesisClient",
    "SynthesisError",
]
