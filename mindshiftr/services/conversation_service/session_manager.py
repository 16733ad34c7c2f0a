"""Conversation State Manager.

Owns SessionContext lifecycle on top of an injected store: creation on
first message, per-turn bookkeeping, the crisis-level ratchet, explicit
de-escalation, closing, and idle eviction. Turns for one session are
serialized through session_lock(); different sessions never contend.
"""
import logging
import threading
import weakref
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from mindshiftr.shared.models import (
    DeEscalation,
    FlowState,
    SentimentLabel,
    SessionContext,
)
from mindshiftr.shared.stores import BaseStore, NotFoundError
from mindshiftr.shared.utils import hash_session_id, hash_user_id
from .flow import FlowTracker

logger = logging.getLogger(__name__)


class SessionOwnershipError(ValueError):
    """Session id is already in use by a different user."""
    pass


class SessionClosedError(RuntimeError):
    """Write attempted on a session that has been closed or evicted."""
    pass


class SessionManager:
    """Manages SessionContext state for the engine."""

    def __init__(
        self,
        store: BaseStore[SessionContext],
        flow_tracker: Optional[FlowTracker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize session manager.

        Args:
            store: Session store
            flow_tracker: Flow state machine (default: bundled lexicon)
            clock: Time source, injectable for tests
        """
        self.store = store
        self.flow_tracker = flow_tracker or FlowTracker()
        self._clock = clock or datetime.utcnow
        # Entries drop once no caller holds the lock
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def session_lock(self, session_id: str) -> threading.Lock:
        """Lock serializing turns for one session.

        Not re-entrant: close() and evict_idle() take it themselves, so
        callers must not hold it around them.
        """
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def get(self, session_id: str) -> Optional[SessionContext]:
        return self.store.get(session_id)

    def get_or_create(
        self,
        session_id: str,
        user_id: str,
        language: str = "en",
        cultural_context: str = "western",
    ) -> SessionContext:
        """Fetch the session, creating it on first contact.

        Raises:
            SessionOwnershipError: If the session belongs to another user
        """
        def create() -> SessionContext:
            now = self._clock()
            logger.info(
                "SESSION_CREATED",
                extra={
                    "session_id_hash": hash_session_id(session_id),
                    "user_id_hash": hash_user_id(user_id),
                }
            )
            return SessionContext(
                session_id=session_id,
                user_id=user_id,
                started_at=now,
                last_active_at=now,
                language=language,
                cultural_context=cultural_context,
            )

        session = self.store.get_or_create(session_id, create)
        if session.user_id != user_id:
            logger.warning(
                "SESSION_OWNERSHIP_MISMATCH",
                extra={"session_id_hash": hash_session_id(session_id)}
            )
            raise SessionOwnershipError("Session belongs to a different user")
        return session

    def begin_turn(self, session: SessionContext, text: str, at: Optional[datetime] = None) -> FlowState:
        """Count the turn, stamp it, and advance the conversation flow."""
        at = at or self._clock()
        session.flow = self.flow_tracker.advance(session.flow, text)
        session.message_count += 1
        session.last_message_at = at
        session.last_active_at = at
        self._save(session)
        return session.flow

    def record_turn(
        self,
        session: SessionContext,
        sentiment: SentimentLabel,
        techniques: Iterable[str],
    ) -> None:
        """Append this turn to the session's append-only logs."""
        session.emotional_journey.append(sentiment.value)
        session.techniques_used.extend(techniques)
        session.last_active_at = self._clock()
        self._save(session)

    def raise_crisis_level(self, session: SessionContext, severity: int) -> int:
        """Ratchet: the crisis level only ever moves up here."""
        previous = session.crisis_level
        session.crisis_level = max(previous, severity)
        self._save(session)

        if session.crisis_level > previous:
            logger.warning(
                "SESSION_CRISIS_LEVEL_RAISED",
                extra={
                    "session_id_hash": hash_session_id(session.session_id),
                    "previous_level": previous,
                    "crisis_level": session.crisis_level,
                }
            )
        return session.crisis_level

    def de_escalate(self, session_id: str, new_level: int, reason: str) -> SessionContext:
        """Explicitly lower a session's crisis level.

        Args:
            session_id: Session to de-escalate
            new_level: Target level, between 0 and the current level
            reason: Why (e.g. "counselor follow-up completed"), kept on the session

        Raises:
            NotFoundError: Unknown session
            ValueError: Level out of range or reason missing
        """
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError("Unknown session")
        if not reason or not reason.strip():
            raise ValueError("De-escalation requires a reason")
        if not 0 <= new_level <= session.crisis_level:
            raise ValueError(
                f"De-escalation level must be between 0 and {session.crisis_level}, got {new_level}"
            )

        session.de_escalations.append(DeEscalation(
            previous_level=session.crisis_level,
            new_level=new_level,
            reason=reason.strip(),
            occurred_at=self._clock(),
        ))
        logger.warning(
            "SESSION_DE_ESCALATED",
            extra={
                "session_id_hash": hash_session_id(session_id),
                "previous_level": session.crisis_level,
                "crisis_level": new_level,
            }
        )
        session.crisis_level = new_level
        self._save(session)
        return session

    def close(self, session_id: str) -> Optional[SessionContext]:
        """Close and forget a session. Returns the final state, if any.

        Waits for an in-flight turn on the session to finish first.
        """
        with self.session_lock(session_id):
            session = self.store.get(session_id)
            if session is None:
                return None
            self._close(session)

        logger.info(
            "SESSION_CLOSED",
            extra={
                "session_id_hash": hash_session_id(session_id),
                "message_count": session.message_count,
                "crisis_level": session.crisis_level,
            }
        )
        return session

    def evict_idle(self, max_idle_seconds: float, now: Optional[datetime] = None) -> List[str]:
        """Close sessions inactive for longer than max_idle_seconds.

        Idleness is re-checked under each session's lock, so a session whose
        turn finishes while eviction waits is kept if that turn made it active.
        """
        cutoff = (now or self._clock()) - timedelta(seconds=max_idle_seconds)
        evicted = []
        for session_id in list(self.store.keys()):
            session = self.store.get(session_id)
            if session is None or session.last_active_at >= cutoff:
                continue
            with self.session_lock(session_id):
                session = self.store.get(session_id)
                if session is None or session.last_active_at >= cutoff:
                    continue
                self._close(session)
            evicted.append(session_id)

        if evicted:
            logger.info("SESSION_IDLE_EVICTION", extra={"evicted_count": len(evicted)})
        return evicted

    def _close(self, session: SessionContext) -> None:
        session.closed = True
        self.store.delete(session.session_id)

    def _save(self, session: SessionContext) -> None:
        if session.closed:
            logger.warning(
                "SESSION_WRITE_AFTER_CLOSE",
                extra={"session_id_hash": hash_session_id(session.session_id)}
            )
            raise SessionClosedError("Session has been closed")
        self.store.put(session.session_id, session)
