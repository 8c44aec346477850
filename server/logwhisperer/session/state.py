import asyncio
from collections import OrderedDict
from contextlib import asynccontextmanager
import logging
from typing import Any, Dict, List, Optional, Protocol

from logwhisperer.rag.pipeline import LogPipeline
from logwhisperer.schemas.models import HistoryResponse, Message, SessionState
from logwhisperer.storage.sqlite_store import now_ms
from logwhisperer.utils.redact import redact

log = logging.getLogger("session")


class SessionPersistence(Protocol):
    def load_session(self, session_id: str) -> Optional[SessionState]: ...
    def save_session(self, state: SessionState) -> None: ...
    def query_recent_events(self, session_id: str, limit: int = ...) -> list: ...
    def query_recent_suggestions(self, session_id: str, limit: int = ...) -> list: ...


class SessionStateMachine:
    """
    Durable state for one conversation.

    Starts uninitialized; the first request loads persisted state (or creates
    an empty one) and the machine stays active from then on. Not safe for
    concurrent chat calls: SessionManager holds a per-session lock around it.
    """

    def __init__(self, session_id: str, store: SessionPersistence, pipeline: LogPipeline, max_messages: int = 20):
        self.session_id = session_id
        self.store = store
        self.pipeline = pipeline
        self.max_messages = max_messages
        self.state: Optional[SessionState] = None

    @property
    def active(self) -> bool:
        return self.state is not None

    async def _ensure_loaded(self) -> SessionState:
        if self.state is None:
            state = await asyncio.to_thread(self.store.load_session, self.session_id)
            if state is None:
                ts = now_ms()
                state = SessionState(session_id=self.session_id, created_at=ts, last_active=ts, messages=[])
                log.info("Session %s created", self.session_id)
            self.state = state
        return self.state

    async def chat(self, logs: str, hints: Optional[str] = None, vendor: Optional[str] = None) -> Dict[str, Any]:
        state = await self._ensure_loaded()
        user_msg = Message(role="user", content=redact(logs), timestamp=now_ms())

        result = await self.pipeline.run(self.session_id, logs, hints=hints, vendor=vendor)

        assistant_msg = Message(role="assistant", content=redact(result.model_dump_json()), timestamp=now_ms())
        messages = (state.messages + [user_msg, assistant_msg])[-self.max_messages:]
        updated = state.model_copy(update={"messages": messages, "last_active": assistant_msg.timestamp})

        # in-memory state only moves once the write has landed
        await asyncio.to_thread(self.store.save_session, updated)
        self.state = updated

        return {**result.model_dump(), "sessionId": self.session_id}

    async def history(self) -> HistoryResponse:
        state = await self._ensure_loaded()
        events = await asyncio.to_thread(self.store.query_recent_events, self.session_id, 50)
        suggestions = await asyncio.to_thread(self.store.query_recent_suggestions, self.session_id, 20)
        return HistoryResponse(
            session_id=self.session_id,
            events=events,
            suggestions=suggestions,
            messages=state.messages,
        )


class SessionManager:
    """
    One SessionStateMachine per session id, each behind its own FIFO lock.

    At most max_sessions machines stay resident. Once a request finishes, the
    least recently used sessions with no request running or waiting are
    dropped; their state is already persisted and reloads on the next request.
    """

    def __init__(self, store: SessionPersistence, pipeline: LogPipeline, max_messages: int = 20, max_sessions: int = 1024):
        self.store = store
        self.pipeline = pipeline
        self.max_messages = max_messages
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, SessionStateMachine]" = OrderedDict()
        self._locks: Dict[str, asyncio.Lock] = {}
        # requests holding or waiting on each session's lock
        self._pending: Dict[str, int] = {}

    @property
    def resident(self) -> List[str]:
        return list(self._sessions)

    def get(self, session_id: str) -> SessionStateMachine:
        machine = self._sessions.get(session_id)
        if machine is None:
            machine = SessionStateMachine(session_id, self.store, self.pipeline, self.max_messages)
            self._sessions[session_id] = machine
        else:
            self._sessions.move_to_end(session_id)
        return machine

    def _lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def _evict(self) -> None:
        for session_id in list(self._sessions):
            if len(self._sessions) <= self.max_sessions:
                break
            if self._pending.get(session_id):
                continue
            del self._sessions[session_id]
            self._locks.pop(session_id, None)
            log.debug("Session %s evicted from memory", session_id)

    @asynccontextmanager
    async def _serialized(self, session_id: str):
        self._pending[session_id] = self._pending.get(session_id, 0) + 1
        try:
            async with self._lock(session_id):
                yield self.get(session_id)
        finally:
            self._pending[session_id] -= 1
            if not self._pending[session_id]:
                del self._pending[session_id]
                if session_id not in self._sessions:
                    # cancelled before the machine was created
                    self._locks.pop(session_id, None)
            self._evict()

    async def chat(self, session_id: str, logs: str, hints: Optional[str] = None, vendor: Optional[str] = None) -> Dict[str, Any]:
        async with self._serialized(session_id) as machine:
            return await machine.chat(logs, hints=hints, vendor=vendor)

    async def history(self, session_id: str) -> HistoryResponse:
        async with self._serialized(session_id) as machine:
            return await machine.history()
