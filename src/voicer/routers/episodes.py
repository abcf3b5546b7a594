"""Routes for browsing generated episodes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from ..processing import ArtifactWriter
from ..schemas.processing import EpisodeListResponse, EpisodeSummaryResponse

router = APIRouter(prefix="/api/episodes", tags=["episodes"])


def get_artifact_writer(request: Request) -> ArtifactWriter:
    writer = getattr(request.app.state, "artifact_writer", None)
    if writer is None:
        raise HTTPException(status_code=500, detail="Episode storage unavailable")
    return writer


@router.get("", response_model=EpisodeListResponse)
async def list_episodes(
    writer: ArtifactWriter = Depends(get_artifact_writer),
) -> EpisodeListResponse:
    episodes = await writer.list_episodes()
    return EpisodeListResponse(
        episodes=[EpisodeSummaryResponse(**episode.to_dict()) for episode in episodes]
    )


@router.get("/{episode}/metadata")
async def get_episode_metadata(
    episode: str,
    writer: ArtifactWriter = Depends(get_artifact_writer),
) -> dict[str, Any]:
    try:
        episode_dir = writer.resolve_episode(episode)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    metadata = await writer.read_metadata(episode_dir)
    if metadata is None:
        raise HTTPException(status_code=404, detail="Episode metadata not found")
    return metadata


__all__ = ["get_artifact_writer", "router"]
