import asyncio

import pytest

from config.models import StreamingConfig
from core.contracts.models import LookupStatus, SessionState
from core.streaming.service import StreamingService
from utils.scheduler import AsyncioScheduler, ManualScheduler


@pytest.fixture
def clock():
    return ManualScheduler(start=1000.0)


@pytest.fixture
def service(clock):
    return StreamingService(StreamingConfig(chunk_timeout_ms=1000, debounce_ms=50), scheduler=clock)


class TestSessions:

    def test_create_session_ids_are_unique_and_prefixed(self, service):
        ids = {service.create_session("conv") for _ in range(100)}

        assert len(ids) == 100
        assert all(i.startswith("stream-") for i in ids)
        assert all(service.is_session_active(i) for i in ids)

    def test_new_session_state(self, service, clock):
        session_id = service.create_session("conv-123")
        session = service.get_session(session_id)

        assert session.conversation_id == "conv-123"
        assert session.total_chunks == 0
        assert session.total_bytes == 0
        assert session.started_at == clock.time()
        assert session.state == SessionState.CREATED

    def test_active_sessions_in_insertion_order(self, service):
        first = service.create_session("a")
        second = service.create_session("b")

        assert [s.session_id for s in service.get_active_sessions()] == [first, second]

    def test_unknown_ids_are_tolerated(self, service):
        assert service.get_session("missing") is None
        assert service.record_chunk("missing", "x") is None
        assert service.end_session("missing") is None
        assert service.is_session_active("missing") is False

    def test_end_session_returns_final_snapshot(self, service):
        session_id = service.create_session("conv")
        service.record_chunk(session_id, "Hello ")
        service.record_chunk(session_id, "world")

        ended = service.end_session(session_id)

        assert ended.total_chunks == 2
        assert ended.total_bytes == 11
        assert ended.state == SessionState.ENDED
        assert not service.is_session_active(session_id)
        assert service.end_session(session_id) is None

    def test_snapshots_do_not_leak_state(self, service):
        session_id = service.create_session("conv")
        snapshot = service.get_session(session_id)
        snapshot.total_chunks = 99

        assert service.get_session(session_id).total_chunks == 0


class TestChunkRecording:

    def test_bytes_accumulate_including_empty_chunks(self, service):
        session_id = service.create_session("conv")
        chunks = ["Hello", "", " ", "world", ""]

        for chunk in chunks:
            service.record_chunk(session_id, chunk)

        session = service.get_session(session_id)
        assert session.total_chunks == 5
        assert session.total_bytes == sum(len(c) for c in chunks)
        assert session.state == SessionState.ACTIVE

    def test_total_bytes_never_decreases(self, service):
        session_id = service.create_session("conv")
        seen = []
        for chunk in ["ab", "", "cde", "f"]:
            seen.append(service.record_chunk(session_id, chunk).total_bytes)

        assert seen == sorted(seen)

    def test_exceeding_buffer_size_keeps_recording(self, clock):
        service = StreamingService(StreamingConfig(max_buffer_size=4), scheduler=clock)
        session_id = service.create_session("conv")

        service.record_chunk(session_id, "abc")
        service.record_chunk(session_id, "defg")

        assert service.get_session(session_id).total_bytes == 7


class TestExpiry:

    def test_idle_session_expires(self, service, clock):
        session_id = service.create_session("conv")

        clock.advance(0.999)
        assert service.is_session_active(session_id)

        clock.advance(0.002)
        assert not service.is_session_active(session_id)

    def test_activity_postpones_expiry(self, service, clock):
        session_id = service.create_session("conv")

        clock.advance(0.8)
        service.record_chunk(session_id, "x")
        clock.advance(0.8)

        assert service.is_session_active(session_id)

        clock.advance(0.3)
        assert not service.is_session_active(session_id)

    def test_ended_session_does_not_expire_later(self, service, clock):
        session_id = service.create_session("conv")
        service.end_session(session_id)

        clock.advance(5)

        assert service.lookup(session_id).status == LookupStatus.ENDED
        assert clock.pending() == 0

    @pytest.mark.asyncio
    async def test_expiry_with_real_timers(self):
        service = StreamingService(StreamingConfig(chunk_timeout_ms=50), scheduler=AsyncioScheduler())
        session_id = service.create_session("conv")
        assert service.is_session_active(session_id)

        await asyncio.sleep(0.1)

        assert service.is_session_active(session_id) is False
        service.clear_all()


class TestLookup:

    def test_lookup_distinguishes_outcomes(self, service, clock):
        live = service.create_session("a")
        ended = service.create_session("b")
        service.end_session(ended)
        expired = service.create_session("c")
        service.record_chunk(live, "x")
        clock.advance(0.9)
        service.record_chunk(live, "y")
        clock.advance(0.2)

        assert service.lookup(live).status == LookupStatus.LIVE
        assert service.lookup(ended).status == LookupStatus.ENDED
        assert service.lookup(expired).status == LookupStatus.EXPIRED
        assert service.lookup(expired).session.state == SessionState.EXPIRED
        assert service.lookup("never").status == LookupStatus.UNKNOWN
        assert service.lookup("never").session is None

    def test_history_is_bounded(self, clock):
        service = StreamingService(StreamingConfig(history_size=2), scheduler=clock)
        ids = [service.create_session("c") for _ in range(3)]
        for session_id in ids:
            service.end_session(session_id)

        assert service.lookup(ids[0]).status == LookupStatus.UNKNOWN
        assert service.lookup(ids[2]).status == LookupStatus.ENDED


class TestChunkProcessor:

    def test_calls_within_window_coalesce(self, service, clock):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)

        for i in range(10):
            processor.process(str(i))
            clock.advance(0.01)

        assert delivered == []
        clock.advance(0.05)
        assert delivered == ["0123456789"]
        assert service.get_session(session_id).total_chunks == 10

    def test_flush_delivers_immediately(self, service, clock):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)

        for i in range(10):
            processor.process(str(i))
        processor.flush()

        assert delivered == ["0123456789"]
        clock.advance(1)
        assert delivered == ["0123456789"]

    def test_flush_is_idempotent(self, service):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)

        processor.flush()
        processor.process("a")
        processor.flush()
        processor.flush()

        assert delivered == ["a"]

    def test_empty_chunks_are_recorded_but_never_delivered(self, service, clock):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)

        processor.process("")
        processor.flush()
        processor.process("")
        clock.advance(0.5)

        assert delivered == []
        assert service.get_session(session_id).total_chunks == 2
        assert service.get_session(session_id).total_bytes == 0

    def test_separate_windows_deliver_separately(self, service, clock):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)

        processor.process("a")
        clock.advance(0.1)
        processor.process("b")
        clock.advance(0.1)

        assert delivered == ["a", "b"]

    def test_max_buffer_size_forces_early_flush(self, service):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id, max_buffer_size=5)

        processor.process("abc")
        assert delivered == []
        processor.process("def")

        assert delivered == ["abcdef"]
        assert processor.pending == ""

    def test_chunks_for_dead_session_are_dropped(self, service):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)
        service.end_session(session_id)

        assert processor.process("late") is False
        processor.flush()

        assert delivered == []

    def test_clear_all_cancels_timers(self, service, clock):
        session_id = service.create_session("conv")
        delivered = []
        processor = service.create_chunk_processor(delivered.append, session_id)
        processor.process("buffered")

        service.clear_all()
        clock.advance(5)

        assert delivered == []
        assert service.get_active_sessions() == []
        assert clock.pending() == 0
        processor.flush()
        assert delivered == ["buffered"]
