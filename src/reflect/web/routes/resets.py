"""Live reset session endpoints.

A session moves setup -> practice -> reflection. Actions return the session
state plus the events they produced; the same events are streamed on
`/{session_id}/events` as Server-Sent Events.
"""

import asyncio
import json
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from reflect.config.techniques import UnknownTechniqueError, require_technique
from reflect.core.technique_timer import FlowEvent, TechniqueStateError
from reflect.db.activity_repository import save_reset_log
from reflect.utils.validators import ValidationError
from reflect.web.dependencies import get_user_id
from reflect.web.schemas import (
    AdvanceRequest,
    ConfigureRequest,
    FlowEventResponse,
    LogCreatedResponse,
    PaceRequest,
    ReflectionSubmitRequest,
    ReflectionSubmitResponse,
    ResetSessionCreate,
    ResetSessionResponse,
    SessionActionResponse,
    SkippedResetCreate,
)
from reflect.web.sessions import ResetSession, SessionNotFoundError, get_session_manager

router = APIRouter(prefix="/api/resets", tags=["resets"])


def _session_response(session: ResetSession) -> ResetSessionResponse:
    return ResetSessionResponse(**session.to_dict())


def _action_response(session: ResetSession, events: list[FlowEvent]) -> SessionActionResponse:
    return SessionActionResponse(
        session=_session_response(session),
        events=[FlowEventResponse(event_type=e.event_type, data=e.data) for e in events],
    )


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


def _conflict(e: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("", response_model=ResetSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: ResetSessionCreate,
    user_id: str = Depends(get_user_id),
) -> ResetSessionResponse:
    """Open a reset session in setup phase."""
    manager = get_session_manager()
    try:
        session = await manager.create_session(
            user_id,
            request.technique_id,
            duration_key=request.duration_key,
            pace=request.pace,
        )
    except UnknownTechniqueError as e:
        raise _not_found(e)
    except TechniqueStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _session_response(session)


@router.post("/skipped", response_model=LogCreatedResponse, status_code=status.HTTP_201_CREATED)
async def log_skipped_reset(
    request: SkippedResetCreate,
    user_id: str = Depends(get_user_id),
) -> LogCreatedResponse:
    """Record a reset the user chose to skip."""
    try:
        technique = require_technique(request.technique_id)
    except UnknownTechniqueError as e:
        raise _not_found(e)

    log = save_reset_log(
        user_id,
        tool_type=technique.id,
        category=technique.category,
        duration_seconds=0,
        skipped=True,
        reason=request.reason,
    )
    return LogCreatedResponse(id=log.id)


@router.get("/{session_id}", response_model=ResetSessionResponse)
async def get_session(session_id: str, user_id: str = Depends(get_user_id)) -> ResetSessionResponse:
    try:
        session = await get_session_manager().get_session(session_id, user_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return _session_response(session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_session(session_id: str, user_id: str = Depends(get_user_id)) -> None:
    """Close a session and its event stream."""
    if not await get_session_manager().end_session(session_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' not found",
        )


@router.post("/{session_id}/configure", response_model=SessionActionResponse)
async def configure(
    session_id: str,
    request: ConfigureRequest,
    user_id: str = Depends(get_user_id),
) -> SessionActionResponse:
    """Change duration/pace during setup."""
    manager = get_session_manager()
    try:
        session = await manager.configure(session_id, user_id, request.duration_key, request.pace)
    except SessionNotFoundError as e:
        raise _not_found(e)
    except TechniqueStateError as e:
        raise _conflict(e)
    return _action_response(session, [])


async def _run_action(session_id: str, user_id: str, action: str, **kwargs) -> SessionActionResponse:
    manager = get_session_manager()
    try:
        events = await getattr(manager, action)(session_id, user_id, **kwargs)
        session = await manager.get_session(session_id, user_id)
    except SessionNotFoundError as e:
        raise _not_found(e)
    except TechniqueStateError as e:
        raise _conflict(e)
    return _action_response(session, events)


@router.post("/{session_id}/start", response_model=SessionActionResponse)
async def start(session_id: str, user_id: str = Depends(get_user_id)) -> SessionActionResponse:
    return await _run_action(session_id, user_id, "start")


@router.post("/{session_id}/pause", response_model=SessionActionResponse)
async def pause(session_id: str, user_id: str = Depends(get_user_id)) -> SessionActionResponse:
    return await _run_action(session_id, user_id, "pause")


@router.post("/{session_id}/resume", response_model=SessionActionResponse)
async def resume(session_id: str, user_id: str = Depends(get_user_id)) -> SessionActionResponse:
    return await _run_action(session_id, user_id, "resume")


@router.post("/{session_id}/pace", response_model=SessionActionResponse)
async def change_pace(session_id: str, user_id: str = Depends(get_user_id)) -> SessionActionResponse:
    """Pause practice to pick a different pace."""
    return await _run_action(session_id, user_id, "change_pace")


@router.post("/{session_id}/continue", response_model=SessionActionResponse)
async def continue_practice(
    session_id: str,
    request: PaceRequest,
    user_id: str = Depends(get_user_id),
) -> SessionActionResponse:
    return await _run_action(session_id, user_id, "continue_practice", pace=request.pace)


@router.post("/{session_id}/advance", response_model=SessionActionResponse)
async def advance(
    session_id: str,
    request: AdvanceRequest,
    user_id: str = Depends(get_user_id),
) -> SessionActionResponse:
    """Advance the practice clock by whole seconds."""
    return await _run_action(session_id, user_id, "advance", seconds=request.seconds)


@router.post("/{session_id}/finish", response_model=SessionActionResponse)
async def finish(session_id: str, user_id: str = Depends(get_user_id)) -> SessionActionResponse:
    """End practice early and go to reflection."""
    return await _run_action(session_id, user_id, "finish")


@router.post("/{session_id}/restart", response_model=SessionActionResponse)
async def restart(session_id: str, user_id: str = Depends(get_user_id)) -> SessionActionResponse:
    return await _run_action(session_id, user_id, "restart")


@router.post("/{session_id}/reflection", response_model=ReflectionSubmitResponse)
async def submit_reflection(
    session_id: str,
    request: ReflectionSubmitRequest,
    user_id: str = Depends(get_user_id),
) -> ReflectionSubmitResponse:
    """Answer the reflection questions and store the completed reset."""
    manager = get_session_manager()
    try:
        session, stored = await manager.submit_reflection(
            session_id,
            user_id,
            request.answers,
            effectiveness=request.effectiveness,
            stress_before=request.stress_before,
            stress_after=request.stress_after,
        )
    except SessionNotFoundError as e:
        raise _not_found(e)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TechniqueStateError as e:
        raise _conflict(e)

    return ReflectionSubmitResponse(
        session=_session_response(session),
        record=session.record.to_dict() if session.record else {},
        reset_log_id=stored["reset_log_id"],
        reflection_id=stored["reflection_id"],
    )


async def _event_generator(session: ResetSession) -> AsyncGenerator[str, None]:
    """Generate SSE events for a session."""
    while True:
        try:
            # Wait for next event with timeout
            event = await asyncio.wait_for(session.event_queue.get(), timeout=30.0)
        except asyncio.TimeoutError:
            yield "event: keepalive\ndata: ping\n\n"
            continue

        if event is None:
            yield "event: close\ndata: Session ended\n\n"
            return

        yield f"event: {event.event_type}\ndata: {json.dumps(event.data)}\n\n"


@router.get("/{session_id}/events")
async def stream_events(session_id: str, user_id: str = Depends(get_user_id)) -> StreamingResponse:
    """Stream session events using Server-Sent Events.

    Events:
    - phase_changed / breath_phase / tick: flow progress as JSON
    - completed: the stored reset record
    - keepalive: sent every 30s to keep the connection alive
    - close: session has ended
    """
    try:
        session = await get_session_manager().get_session(session_id, user_id)
    except SessionNotFoundError as e:
        raise _not_found(e)

    return StreamingResponse(
        _event_generator(session),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
