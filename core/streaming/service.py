import uuid
import weakref
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from config.models import StreamingConfig
from core.contracts.models import (
    LookupStatus,
    SessionLookup,
    SessionState,
    StreamingSession,
)
from core.contracts.scheduler import Scheduler
from utils.logger import logger
from utils.scheduler import AsyncioScheduler


class ChunkProcessor:
    """
    Debouncing adapter between per-token callbacks and a coalesced delivery.

    Chunks passed to `process` are recorded on the bound streaming session and
    buffered; the buffer is delivered in one call once no new chunk arrived for
    the debounce window, when it grows past `max_buffer_size`, or on `flush`.
    """

    def __init__(
        self,
        service: "StreamingService",
        deliver: Callable[[str], None],
        session_id: str,
        debounce: float,
        max_buffer_size: int,
    ):
        self._service = service
        self._deliver = deliver
        self.session_id = session_id
        self._debounce = debounce
        self._max_buffer_size = max_buffer_size
        self._buffer: List[str] = []
        self._buffered = 0
        self._timer: Optional[Any] = None

    @property
    def pending(self) -> str:
        return "".join(self._buffer)

    def process(self, chunk: str) -> bool:
        """
        Buffers a chunk and re-arms the debounce timer.

        Returns:
            False if the session is no longer live and the chunk was dropped.
        """
        if self._service.record_chunk(self.session_id, chunk) is None:
            logger.debug(f"Dropping chunk for inactive session {self.session_id}")
            return False

        self._buffer.append(chunk)
        self._buffered += len(chunk)

        if self._buffered > self._max_buffer_size:
            self.flush()
            return True

        self.cancel()
        self._timer = self._service.scheduler.schedule(self._debounce, self._on_timer)
        return True

    def flush(self) -> None:
        """Delivers anything buffered right away. Does nothing when empty."""
        self.cancel()
        text = "".join(self._buffer)
        self._buffer.clear()
        self._buffered = 0
        if text:
            self._deliver(text)

    def cancel(self) -> None:
        """Cancels the pending debounce timer, keeping the buffer."""
        if self._timer is not None:
            self._service.scheduler.cancel(self._timer)
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()


class StreamingService:
    """
    Tracks in-flight response streams.

    Each session counts chunks and characters, expires after
    `chunk_timeout_ms` without activity, and is otherwise closed with
    `end_session`. Unknown ids never raise: lookups return None or False.

    Without an explicit `scheduler`, timers run on the asyncio loop that is
    running when `create_session` is called, so synchronous callers must pass
    one (e.g. `AsyncioScheduler(loop)` or `ManualScheduler()`).
    """

    SESSION_PREFIX = "stream-"

    def __init__(
        self,
        config: Optional[StreamingConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.config = config or StreamingConfig()
        self.scheduler = scheduler or AsyncioScheduler()
        self._sessions: Dict[str, StreamingSession] = {}
        self._expiry: Dict[str, Any] = {}
        self._finished: "OrderedDict[str, StreamingSession]" = OrderedDict()
        self._processors: "weakref.WeakSet[ChunkProcessor]" = weakref.WeakSet()

    def create_session(self, conversation_id: str) -> str:
        session_id = self._generate_session_id()
        while session_id in self._sessions:
            session_id = self._generate_session_id()

        self._sessions[session_id] = StreamingSession(
            session_id=session_id,
            conversation_id=conversation_id,
            started_at=self.scheduler.time(),
        )
        self._arm_expiry(session_id)
        logger.debug(f"Created streaming session {session_id} for '{conversation_id}'")
        return session_id

    def record_chunk(self, session_id: str, chunk: str) -> Optional[StreamingSession]:
        """
        Adds a chunk to a session's counters and refreshes its expiry timer.

        Returns:
            A snapshot of the updated session, or None if it is not live.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None

        previous_bytes = session.total_bytes
        session.total_chunks += 1
        session.total_bytes += len(chunk)
        session.state = SessionState.ACTIVE

        limit = self.config.max_buffer_size
        if previous_bytes <= limit < session.total_bytes:
            logger.warning(f"Session {session_id} exceeded max buffer size ({limit} bytes)")

        self._arm_expiry(session_id)
        return session.model_copy()

    def end_session(self, session_id: str) -> Optional[StreamingSession]:
        """Closes a session and returns its final state, or None if it is not live."""
        session = self._finish(session_id, SessionState.ENDED)
        if session is None:
            return None

        duration_ms = (self.scheduler.time() - session.started_at) * 1000
        logger.info(
            f"Session {session_id} completed: {session.total_chunks} chunks, "
            f"{session.total_bytes} bytes in {duration_ms:.0f}ms"
        )
        return session

    def get_session(self, session_id: str) -> Optional[StreamingSession]:
        session = self._sessions.get(session_id)
        return session.model_copy() if session else None

    def get_active_sessions(self) -> List[StreamingSession]:
        return [s.model_copy() for s in self._sessions.values()]

    def is_session_active(self, session_id: str) -> bool:
        return session_id in self._sessions

    def lookup(self, session_id: str) -> SessionLookup:
        """
        Tells apart live, ended, expired and never-seen sessions.

        Only the last `history_size` finished sessions are remembered; older
        ones report as unknown.
        """
        session = self._sessions.get(session_id)
        if session is not None:
            return SessionLookup(status=LookupStatus.LIVE, session=session.model_copy())

        finished = self._finished.get(session_id)
        if finished is None:
            return SessionLookup(status=LookupStatus.UNKNOWN)

        status = LookupStatus.EXPIRED if finished.state == SessionState.EXPIRED else LookupStatus.ENDED
        return SessionLookup(status=status, session=finished.model_copy())

    def create_chunk_processor(
        self,
        deliver: Callable[[str], None],
        session_id: str,
        max_buffer_size: Optional[int] = None,
    ) -> ChunkProcessor:
        processor = ChunkProcessor(
            self,
            deliver,
            session_id,
            debounce=self.config.debounce_ms / 1000,
            max_buffer_size=max_buffer_size or self.config.max_buffer_size,
        )
        self._processors.add(processor)
        return processor

    def clear_all(self) -> None:
        """Drops every session and cancels all pending timers."""
        for handle in self._expiry.values():
            self.scheduler.cancel(handle)
        self._expiry.clear()
        self._sessions.clear()
        for processor in list(self._processors):
            processor.cancel()
        logger.debug("Cleared all streaming sessions")

    def _arm_expiry(self, session_id: str) -> None:
        handle = self._expiry.pop(session_id, None)
        if handle is not None:
            self.scheduler.cancel(handle)
        self._expiry[session_id] = self.scheduler.schedule(
            self.config.chunk_timeout_ms / 1000,
            lambda: self._expire(session_id),
        )

    def _expire(self, session_id: str) -> None:
        self._expiry.pop(session_id, None)
        session = self._finish(session_id, SessionState.EXPIRED)
        if session is not None:
            logger.warning(
                f"Session {session_id} expired after {self.config.chunk_timeout_ms}ms without activity"
            )

    def _finish(self, session_id: str, state: SessionState) -> Optional[StreamingSession]:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None

        handle = self._expiry.pop(session_id, None)
        if handle is not None:
            self.scheduler.cancel(handle)

        session.state = state
        if self.config.history_size > 0:
            self._finished[session_id] = session
            while len(self._finished) > self.config.history_size:
                self._finished.popitem(last=False)
        return session.model_copy()

    def _generate_session_id(self) -> str:
        return f"{self.SESSION_PREFIX}{int(self.scheduler.time() * 1000)}-{uuid.uuid4().hex[:9]}"
