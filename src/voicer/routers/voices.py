"""Routes exposing the available synthesis voices."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from ..services.tts import ElevenLabsClient, ElevenLabsError

router = APIRouter(prefix="/api/voices", tags=["voices"])


def get_tts_client(request: Request) -> ElevenLabsClient:
    client = getattr(request.app.state, "tts_client", None)
    if client is None:
        raise HTTPException(status_code=500, detail="Speech service unavailable")
    return client


@router.get("")
async def list_voices(
    refresh: bool = False,
    client: ElevenLabsClient = Depends(get_tts_client),
) -> dict[str, Any]:
    try:
        voices = await client.list_voices(force_refresh=refresh)
    except ElevenLabsError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"success": True, "voices": voices, "count": len(voices)}


__all__ = ["get_tts_client", "router"]
