"""
Session lifecycle.

A session brackets one span of event recording in its own append-only log:

    UNOPENED --open()--> OPEN --close()--> CLOSED

``open`` writes the session-open record, ``tag_event`` appends event records
while the session is open, and ``close`` writes the session-close record.
CLOSED is terminal. Operations called in the wrong state, and ``open`` once
the stored-session cap is reached, are skipped rather than failing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from .config import DEFAULT_MAX_NAME_LENGTH, DEFAULT_MAX_STORED_SESSIONS
from .exceptions import CapacityExceededError, InvalidStateError
from .records import (
    encode_record,
    event_record,
    new_uuid,
    session_close_record,
    session_open_record,
    unix_time,
)
from .results import OperationResult
from .storage.base import SpoolStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle states of a session."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


class SessionLifecycle:
    """State machine writing one session log.

    Every operation returns an ``OperationResult`` and logs its outcome;
    nothing raises. State only advances after the corresponding record has
    been written, so a failed ``open`` leaves the session UNOPENED and a
    failed ``close`` leaves it OPEN.
    """

    def __init__(
        self,
        store: SpoolStore,
        *,
        max_stored_sessions: int = DEFAULT_MAX_STORED_SESSIONS,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
        clock: Callable[[], int] = unix_time,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        """Initialize the lifecycle.

        Args:
            store: Spool store receiving the session log
            max_stored_sessions: Refuse to open once this many logs are stored
            max_name_length: Event names are truncated to this length
            clock: Returns the current Unix time in seconds
            log: Logger to report outcomes on (defaults to the module logger)
        """
        self.store = store
        self.max_stored_sessions = max_stored_sessions
        self.max_name_length = max_name_length
        self._clock = clock
        self._log = log or logger

        self._state = SessionState.UNOPENED
        self._session_id: str | None = None
        self._session_start: int | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def session_start(self) -> int | None:
        return self._session_start

    def _report(self, result: OperationResult) -> OperationResult:
        if result.ok:
            self._log.debug(result.message)
        elif result.skipped:
            self._log.info(result.message)
        else:
            self._log.warning(result.message, exc_info=result.error)
        return result

    async def open(self) -> OperationResult:
        """Open the session and write its session-open record."""
        async with self._lock:
            if self._state is not SessionState.UNOPENED:
                error = InvalidStateError("open", self._state.value)
                return self._report(OperationResult.skip("Session is already opened or closed", error))

            try:
                stored = await self.store.count_sessions()
                if stored >= self.max_stored_sessions:
                    error = CapacityExceededError(stored, self.max_stored_sessions)
                    return self._report(
                        OperationResult.skip(f"Local stored session count exceeded: {error.message}", error)
                    )

                session_id = new_uuid()
                start = self._clock()
                await self.store.append_session(
                    session_id, encode_record(session_open_record(session_id, start))
                )
            except Exception as e:
                return self._report(OperationResult.failure(f"Session not opened: {e}", e))

            self._session_id = session_id
            self._session_start = start
            self._state = SessionState.OPEN
            return self._report(OperationResult.success(f"Session opened: {session_id}"))

    async def close(self) -> OperationResult:
        """Close the session and write its session-close record."""
        async with self._lock:
            if self._state is not SessionState.OPEN:
                error = InvalidStateError("close", self._state.value)
                return self._report(
                    OperationResult.skip(
                        "Session not closed because it is either not open or already closed", error
                    )
                )

            try:
                record = session_close_record(self._session_id, self._session_start, self._clock())
                await self.store.append_session(self._session_id, encode_record(record))
            except Exception as e:
                return self._report(OperationResult.failure(f"Session not closed: {e}", e))

            self._state = SessionState.CLOSED
            return self._report(OperationResult.success(f"Session closed: {self._session_id}"))

    async def tag_event(
        self,
        name: str,
        attributes: Mapping[Any, Any] | None = None,
    ) -> OperationResult:
        """Append an event record to the open session.

        Args:
            name: Event name, e.g. "button pressed"; truncated to max_name_length
            attributes: Optional flat key/value map recorded with the event
        """
        async with self._lock:
            if self._state is not SessionState.OPEN:
                error = InvalidStateError("tag event", self._state.value)
                return self._report(
                    OperationResult.skip("Event not tagged because session is not open", error)
                )

            event_name = "" if name is None else str(name)
            if len(event_name) > self.max_name_length:
                event_name = event_name[: self.max_name_length]

            try:
                record = event_record(self._session_id, event_name, self._clock(), attributes)
                await self.store.append_session(self._session_id, encode_record(record))
            except Exception as e:
                return self._report(OperationResult.failure(f"Event {event_name!r} not tagged: {e}", e))

            return self._report(OperationResult.success(f"Tagged event: {event_name!r}"))
