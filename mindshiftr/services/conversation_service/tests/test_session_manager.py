"""Tests for SessionManager."""
import gc
import threading
from datetime import datetime, timedelta

import pytest

from mindshiftr.shared.models import ConversationStage, SentimentLabel, SessionContext
from mindshiftr.shared.stores import InMemoryStore, NotFoundError
from mindshiftr.shared.utils import configure_pii_salt
from mindshiftr.services.conversation_service.session_manager import (
    SessionClosedError,
    SessionManager,
    SessionOwnershipError,
)


START = datetime(2026, 3, 1, 9, 0, 0)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore("sessions")


@pytest.fixture
def manager(store, clock):
    return SessionManager(store, clock=clock)


class TestLifecycle:

    def test_created_on_first_contact(self, manager, store):
        session = manager.get_or_create("s1", "u1", cultural_context="eastern")

        assert session.message_count == 0
        assert session.started_at == START
        assert session.cultural_context == "eastern"
        assert store.get("s1") is session

    def test_existing_session_returned(self, manager):
        first = manager.get_or_create("s1", "u1")

        assert manager.get_or_create("s1", "u1") is first

    def test_other_users_session_rejected(self, manager):
        manager.get_or_create("s1", "u1")

        with pytest.raises(SessionOwnershipError):
            manager.get_or_create("s1", "u2")

    def test_close_forgets_session(self, manager, store):
        manager.get_or_create("s1", "u1")

        closed = manager.close("s1")

        assert closed.closed is True
        assert store.get("s1") is None
        assert manager.close("s1") is None


class TestTurns:

    def test_begin_turn_counts_and_advances_flow(self, manager, clock):
        session = manager.get_or_create("s1", "u1")
        clock.advance(30)

        flow = manager.begin_turn(session, "What brings you here, you ask?")

        assert session.message_count == 1
        assert session.last_message_at == START + timedelta(seconds=30)
        assert flow.stage == ConversationStage.ASSESSMENT
        assert session.flow is flow

    def test_record_turn_appends(self, manager):
        session = manager.get_or_create("s1", "u1")

        manager.record_turn(session, SentimentLabel.NEGATIVE, ["breathing_exercises"])
        manager.record_turn(session, SentimentLabel.POSITIVE, ["journaling", "mindfulness"])

        assert session.emotional_journey == ["negative", "positive"]
        assert session.techniques_used == ["breathing_exercises", "journaling", "mindfulness"]


class TestCrisisRatchet:

    def test_level_never_decreases_through_raise(self, manager):
        session = manager.get_or_create("s1", "u1")

        manager.raise_crisis_level(session, 9)
        level = manager.raise_crisis_level(session, 4)

        assert level == 9
        assert session.crisis_level == 9

    def test_explicit_de_escalation(self, manager, store):
        session = manager.get_or_create("s1", "u1")
        manager.raise_crisis_level(session, 9)

        manager.de_escalate("s1", 2, "counselor follow-up completed")

        stored = store.get("s1")
        assert stored.crisis_level == 2
        assert stored.de_escalations[0].previous_level == 9
        assert stored.de_escalations[0].reason == "counselor follow-up completed"

    def test_de_escalation_cannot_raise(self, manager):
        session = manager.get_or_create("s1", "u1")
        manager.raise_crisis_level(session, 5)

        with pytest.raises(ValueError):
            manager.de_escalate("s1", 7, "wrong direction")

    def test_de_escalation_requires_reason(self, manager):
        session = manager.get_or_create("s1", "u1")
        manager.raise_crisis_level(session, 5)

        with pytest.raises(ValueError):
            manager.de_escalate("s1", 0, "  ")

    def test_de_escalation_unknown_session(self, manager):
        with pytest.raises(NotFoundError):
            manager.de_escalate("missing", 0, "reason")


class TestIdleEviction:

    def test_idle_sessions_evicted(self, manager, clock, store):
        manager.get_or_create("old", "u1")
        clock.advance(3600)
        manager.get_or_create("new", "u2")
        clock.advance(60)

        evicted = manager.evict_idle(max_idle_seconds=1800)

        assert evicted == ["old"]
        assert store.get("old") is None
        assert store.get("new") is not None

    def test_activity_keeps_session_alive(self, manager, clock, store):
        session = manager.get_or_create("s1", "u1")
        clock.advance(1700)
        manager.begin_turn(session, "still here")
        clock.advance(1700)

        assert manager.evict_idle(max_idle_seconds=1800) == []

    def test_eviction_waits_for_running_turn(self, manager, clock, store):
        session = manager.get_or_create("s1", "u1")
        evicted = []

        with manager.session_lock("s1"):
            evictor = threading.Thread(
                target=lambda: evicted.extend(
                    manager.evict_idle(max_idle_seconds=1800, now=START + timedelta(days=1))
                )
            )
            evictor.start()
            evictor.join(0.2)
            assert evictor.is_alive()
            manager.begin_turn(session, "still typing")

        evictor.join(5)
        assert evicted == ["s1"]
        assert store.get("s1") is None

    def test_closed_session_is_not_written_back(self, manager, store):
        session = manager.get_or_create("s1", "u1")
        manager.close("s1")

        with pytest.raises(SessionClosedError):
            manager.record_turn(session, SentimentLabel.NEUTRAL, ["active_listening"])
        with pytest.raises(SessionClosedError):
            manager.raise_crisis_level(session, 9)
        assert store.get("s1") is None

    def test_new_turn_after_close_starts_fresh(self, manager):
        old = manager.get_or_create("s1", "u1")
        manager.begin_turn(old, "hello")
        manager.close("s1")

        fresh = manager.get_or_create("s1", "u1")

        assert fresh is not old
        assert fresh.message_count == 0
        assert fresh.closed is False


class TestSessionLocks:

    def test_same_session_same_lock(self, manager):
        assert manager.session_lock("s1") is manager.session_lock("s1")

    def test_different_sessions_different_locks(self, manager):
        assert manager.session_lock("s1") is not manager.session_lock("s2")

    def test_concurrent_turns_are_counted(self, manager):
        session = manager.get_or_create("s1", "u1")

        def turn():
            with manager.session_lock("s1"):
                manager.begin_turn(session, "hello")

        threads = [threading.Thread(target=turn) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert session.message_count == 20

    def test_unused_locks_are_released(self, manager):
        for i in range(100):
            with manager.session_lock(f"s{i}"):
                pass

        gc.collect()

        assert len(manager._locks) == 0


def test_session_context_duration():
    session = SessionContext(session_id="s1", user_id="u1", started_at=START)

    assert session.duration_seconds(START + timedelta(minutes=2)) == 120
