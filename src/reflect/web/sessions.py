"""Live reset sessions for the web API.

Each session wraps a TechniqueFlow, an event queue consumed by the SSE
endpoint, and (while practice runs) a ticker task that advances the flow
once per tick interval. Manual `advance` calls drive the same flow.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from reflect.config.app_config import load_app_config
from reflect.config.techniques import require_technique
from reflect.core.preferences import get_technique_preference, remember_choice
from reflect.core.technique_timer import (
    FlowEvent,
    FlowPhase,
    ResetRecord,
    TechniqueFlow,
    save_completed_reset,
    validate_ratings,
)

logger = structlog.get_logger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a session does not exist (or belongs to another user)."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


@dataclass
class ResetSession:
    """An open reset session."""

    session_id: str
    user_id: str
    flow: TechniqueFlow
    created_at: str = ""
    status: str = "active"  # active | completed | ended
    # Event queue for SSE; None marks the end of the stream
    event_queue: asyncio.Queue[FlowEvent | None] = field(default_factory=asyncio.Queue)
    ticker: asyncio.Task | None = None
    record: ResetRecord | None = None

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "created_at": self.created_at,
            "status": self.status,
            "state": self.flow.to_dict(),
        }


class ResetSessionManager:
    """Holds open reset sessions in memory."""

    def __init__(self, tick_interval: float | None = None):
        if tick_interval is None:
            tick_interval = load_app_config().timer.tick_interval_seconds
        # <= 0 disables the background ticker (manual advance only)
        self.tick_interval = tick_interval
        self._sessions: dict[str, ResetSession] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    async def create_session(
        self,
        user_id: str,
        technique_id: str,
        duration_key: str | None = None,
        pace: str | None = None,
    ) -> ResetSession:
        """Open a session in setup phase.

        Raises:
            UnknownTechniqueError: If the technique does not exist
            TechniqueStateError: If the duration or pace is not allowed
        """
        technique = require_technique(technique_id)

        if duration_key is None or pace is None:
            preference = get_technique_preference(user_id, technique_id)
            if preference is not None:
                if duration_key is None and preference.duration_key in technique.durations:
                    duration_key = preference.duration_key
                if pace is None and preference.pace in technique.paces:
                    pace = preference.pace

        flow = TechniqueFlow(technique, duration_key=duration_key, pace=pace)
        session = ResetSession(
            session_id=str(uuid.uuid4())[:8],
            user_id=user_id,
            flow=flow,
        )

        async with self._lock:
            finished = [
                s
                for s in self._sessions.values()
                if s.user_id == user_id and s.status == "completed"
            ]
            for old in finished:
                del self._sessions[old.session_id]
            self._sessions[session.session_id] = session

        # A new session replaces the user's completed ones
        for old in finished:
            await old.event_queue.put(None)
            logger.debug("reset_session.evicted", session_id=old.session_id)

        logger.info(
            "reset_session.created",
            session_id=session.session_id,
            user_id=user_id,
            technique_id=technique_id,
        )
        return session

    async def get_session(self, session_id: str, user_id: str | None = None) -> ResetSession:
        """Get a session, optionally checking ownership.

        Raises:
            SessionNotFoundError: If missing or owned by another user
        """
        async with self._lock:
            session = self._sessions.get(session_id)

        if session is None or (user_id is not None and session.user_id != user_id):
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(self, user_id: str | None = None) -> list[ResetSession]:
        async with self._lock:
            sessions = list(self._sessions.values())
        if user_id is None:
            return sessions
        return [s for s in sessions if s.user_id == user_id]

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def _emit(self, session: ResetSession, events: list[FlowEvent]) -> list[FlowEvent]:
        for event in events:
            await session.event_queue.put(event)
        return events

    async def configure(
        self,
        session_id: str,
        user_id: str,
        duration_key: str | None = None,
        pace: str | None = None,
    ) -> ResetSession:
        session = await self.get_session(session_id, user_id)
        session.flow.configure(duration_key=duration_key, pace=pace)
        return session

    async def start(self, session_id: str, user_id: str) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        events = session.flow.start()
        remember_choice(
            user_id, session.flow.technique.id, session.flow.duration_key, session.flow.pace
        )
        self._start_ticker(session)
        return await self._emit(session, events)

    async def pause(self, session_id: str, user_id: str) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        session.flow.pause()
        return []

    async def resume(self, session_id: str, user_id: str) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        session.flow.resume()
        return []

    async def change_pace(self, session_id: str, user_id: str) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        return await self._emit(session, session.flow.change_pace())

    async def continue_practice(
        self,
        session_id: str,
        user_id: str,
        pace: str | None = None,
    ) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        return await self._emit(session, session.flow.continue_practice(pace))

    async def advance(self, session_id: str, user_id: str, seconds: int = 1) -> list[FlowEvent]:
        """Advance the practice clock manually."""
        session = await self.get_session(session_id, user_id)
        events = session.flow.tick(seconds)
        return await self._emit(session, events)

    async def finish(self, session_id: str, user_id: str) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        return await self._emit(session, session.flow.finish_early())

    async def restart(self, session_id: str, user_id: str) -> list[FlowEvent]:
        session = await self.get_session(session_id, user_id)
        self._stop_ticker(session)
        session.status = "active"
        session.record = None
        return await self._emit(session, session.flow.restart())

    async def submit_reflection(
        self,
        session_id: str,
        user_id: str,
        answers: dict[str, str],
        effectiveness: int | None = None,
        stress_before: int | None = None,
        stress_after: int | None = None,
    ) -> tuple[ResetSession, dict[str, Any]]:
        """Persist the reset, then complete the flow.

        The flow stays in reflection if validation or storage fails, so the
        client can submit again.

        Returns:
            (session, ids of the stored rows)
        """
        session = await self.get_session(session_id, user_id)
        validate_ratings(effectiveness, stress_before, stress_after)
        record = session.flow.build_record(answers)

        stored = save_completed_reset(
            user_id,
            record,
            effectiveness=effectiveness,
            stress_before=stress_before,
            stress_after=stress_after,
        )
        session.flow.complete(record)
        self._stop_ticker(session)
        session.record = record
        session.status = "completed"
        await session.event_queue.put(
            FlowEvent("completed", {"record": record.to_dict(), **stored})
        )

        logger.info("reset_session.completed", session_id=session_id, user_id=user_id)
        return session, stored

    async def end_session(self, session_id: str, user_id: str | None = None) -> bool:
        """Close a session: cancel its ticker and end the event stream.

        Returns:
            True if a session was ended, False if not found
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or (user_id is not None and session.user_id != user_id):
                return False
            del self._sessions[session_id]

        self._stop_ticker(session)
        if session.status == "active":
            session.status = "ended"
        await session.event_queue.put(None)

        logger.info("reset_session.ended", session_id=session_id)
        return True

    # -------------------------------------------------------------------------
    # Ticker
    # -------------------------------------------------------------------------

    def _start_ticker(self, session: ResetSession) -> None:
        if self.tick_interval <= 0:
            return
        self._stop_ticker(session)
        session.ticker = asyncio.create_task(self._run_ticker(session))

    def _stop_ticker(self, session: ResetSession) -> None:
        if session.ticker is not None and not session.ticker.done():
            session.ticker.cancel()
        session.ticker = None

    async def _run_ticker(self, session: ResetSession) -> None:
        flow = session.flow
        while flow.phase in (FlowPhase.PRACTICE, FlowPhase.PACE_CHANGE):
            await asyncio.sleep(self.tick_interval)
            for event in flow.tick():
                await session.event_queue.put(event)
        logger.debug("reset_session.ticker_stopped", session_id=session.session_id)


# Global session manager instance
_session_manager: ResetSessionManager | None = None


def get_session_manager() -> ResetSessionManager:
    """Get the global session manager instance."""
    global _session_manager
    if _session_manager is None:
        _session_manager = ResetSessionManager()
    return _session_manager


def reset_session_manager(tick_interval: float | None = None) -> ResetSessionManager:
    """Replace the global session manager, cancelling any running tickers."""
    global _session_manager
    if _session_manager is not None:
        for session in _session_manager._sessions.values():
            _session_manager._stop_ticker(session)
    _session_manager = ResetSessionManager(tick_interval=tick_interval)
    return _session_manager
