"""Routes for starting and controlling batch synthesis sessions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..processing import (
    JobState,
    ProcessingConfigurationError,
    ProcessingSessionManager,
    ProcessingStateError,
    SessionNotFoundError,
)
from ..schemas.processing import (
    ActionResponse,
    ProcessingResultsResponse,
    ProcessingStatusResponse,
    QueueInfo,
    StartProcessingRequest,
    StartProcessingResponse,
)

router = APIRouter(prefix="/api/processing", tags=["processing"])


def get_session_manager(request: Request) -> ProcessingSessionManager:
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        raise HTTPException(status_code=500, detail="Processing service unavailable")
    return manager


def _not_found(exc: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/start", response_model=StartProcessingResponse)
async def start_processing(
    payload: StartProcessingRequest,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> StartProcessingResponse:
    if not payload.dialogues:
        raise HTTPException(status_code=400, detail="No dialogues supplied")
    if not payload.speaker_mapping:
        raise HTTPException(status_code=400, detail="No speaker mapping supplied")

    try:
        queue_info = await manager.start_session(
            payload.session_id,
            payload.dialogues,
            payload.speaker_mapping,
            payload.episode_info,
        )
    except ProcessingConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ProcessingStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return StartProcessingResponse(
        message="Processing started",
        sessionId=payload.session_id,
        queueInfo=QueueInfo(**queue_info),
    )


@router.get("/status/{session_id}", response_model=ProcessingStatusResponse)
async def get_status(
    session_id: str,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> ProcessingStatusResponse:
    try:
        session = manager.get(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc

    return ProcessingStatusResponse(
        sessionId=session_id,
        state=session.engine.state.value,
        stats=session.engine.get_stats().to_dict(),
        error=session.error,
    )


@router.post("/pause/{session_id}", response_model=ActionResponse)
async def pause_processing(
    session_id: str,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> ActionResponse:
    try:
        manager.pause(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    return ActionResponse(message="Processing paused")


@router.post("/resume/{session_id}", response_model=ActionResponse)
async def resume_processing(
    session_id: str,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> ActionResponse:
    try:
        manager.resume(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except ProcessingStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ActionResponse(message="Processing resumed")


@router.post("/cancel/{session_id}", response_model=ActionResponse)
async def cancel_processing(
    session_id: str,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> ActionResponse:
    try:
        manager.cancel(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    return ActionResponse(message="Processing cancelled")


@router.post("/retry/{session_id}", response_model=ActionResponse)
async def retry_failed(
    session_id: str,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> ActionResponse:
    try:
        count = manager.retry(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc
    except ProcessingStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if count == 0:
        return ActionResponse(message="No failed items to retry")
    return ActionResponse(message=f"Retrying {count} failed items")


@router.get("/results/{session_id}", response_model=ProcessingResultsResponse)
async def get_results(
    session_id: str,
    manager: ProcessingSessionManager = Depends(get_session_manager),
) -> ProcessingResultsResponse:
    try:
        session = manager.get(session_id)
    except SessionNotFoundError as exc:
        raise _not_found(exc) from exc

    engine = session.engine
    stats = engine.get_stats()
    complete = engine.state == JobState.COMPLETED
    return ProcessingResultsResponse(
        sessionId=session_id,
        complete=complete,
        stats=stats.to_dict(),
        episodeDir=str(engine.episode_dir) if engine.episode_dir else "",
        downloadReady=complete and stats.completed > 0,
    )


__all__ = ["get_session_manager", "router"]
