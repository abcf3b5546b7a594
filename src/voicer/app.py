"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import PROJECT_ROOT, Settings, get_settings
from .logging_handlers import DateStampedFileHandler, cleanup_old_logs
from .logging_settings import parse_logging_settings
from .processing import ArtifactWriter, ProcessingSessionManager
from .routers.episodes import router as episodes_router
from .routers.processing import router as processing_router
from .routers.voices import router as voices_router
from .services.tts import ElevenLabsClient, SpeechBackend

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_under(base: Path, p: Path) -> Path:
    # Absolute paths are used as-is (tests and external mounts).
    if p.is_absolute():
        return p.resolve()
    resolved = (base / p).resolve()
    if not resolved.is_relative_to(base):
        raise ValueError(f"Configured path {resolved} escapes project root {base}")
    return resolved


def _configure_logging(settings: Settings) -> None:
    """Configure terminal and job-log handlers from ``logging_settings.conf``.

    ``LOG_LEVEL`` in the environment overrides the terminal level.
    """
    load_dotenv()

    log_settings = parse_logging_settings(
        _resolve_under(PROJECT_ROOT, settings.logging_settings_path)
    )
    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    terminal_level = log_settings.terminal_level
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        terminal_level = getattr(logging, env_level.upper(), logging.INFO)
    if terminal_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(terminal_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    log_dir = _resolve_under(PROJECT_ROOT, settings.log_dir)
    # Sweep first: with delay=True today's folder stays empty until the first record.
    cleanup_old_logs(
        [log_dir], log_settings.retention_hours, logging.getLogger("voicer.logging")
    )
    if log_settings.jobs_level is not None:
        file_handler = DateStampedFileHandler(log_dir, prefix="jobs", delay=True)
        file_handler.setLevel(log_settings.jobs_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    levels = [h.level for h in handlers]
    logging.basicConfig(
        level=min(levels) if levels else logging.WARNING,
        handlers=handlers or [logging.NullHandler()],
        force=True,
    )

    logging.getLogger("voicer").setLevel(min(levels) if levels else logging.WARNING)
    if not levels or min(levels) > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    settings: Optional[Settings] = None,
    *,
    backend: Optional[SpeechBackend] = None,
) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings)

    output_dir = _resolve_under(PROJECT_ROOT, settings.output_dir)
    settings = settings.model_copy(update={"output_dir": output_dir})

    tts_client = ElevenLabsClient(settings)
    session_manager = ProcessingSessionManager(settings, backend or tts_client)
    artifact_writer = ArtifactWriter(output_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.info("Writing episodes to %s", output_dir)
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(session_manager.shutdown(), timeout=10.0)
            except asyncio.TimeoutError:
                logging.warning("Session shutdown timed out after 10s")
            await tts_client.aclose()

    app = FastAPI(
        title="Voicer",
        version="0.1.0",
        description="Batch dialogue-to-speech processing powered by ElevenLabs.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.tts_client = tts_client
    app.state.session_manager = session_manager
    app.state.artifact_writer = artifact_writer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(processing_router)
    app.include_router(episodes_router)
    app.include_router(voices_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, object]:
        return {
            "status": "ok",
            "ttsConfigured": tts_client.is_configured,
            "activeSessions": len(session_manager),
        }

    return app


__all__ = ["create_app"]
