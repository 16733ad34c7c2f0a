"""Triage Engine: per-turn orchestration.

One turn runs to completion under the session's lock:

    analyze -> detect crisis -> count turn
        crisis:     ratchet level, record event, canned crisis response
        otherwise:  select intervention, compose response

The engine holds no conversation state of its own. Sessions and profiles
live in the injected stores; the only engine-local state is a pair of
operational counters for the analytics report.
"""
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from mindshiftr.shared.lexicon import Lexicon, load_lexicon
from mindshiftr.shared.models import (
    CrisisAssessment,
    EffectivenessRecord,
    Message,
    ProgressMarker,
    SessionContext,
    UserProfile,
)
from mindshiftr.shared.stores import BaseStore, InMemoryStore, NotFoundError
from mindshiftr.shared.utils import (
    configure_pii_salt,
    hash_session_id,
    hash_text_for_audit,
    is_pii_salt_configured,
)
from mindshiftr.services.analyzer_service import MessageAnalyzer
from mindshiftr.services.clinical_service import ClinicalRuleValidator
from mindshiftr.services.conversation_service import (
    FlowTracker,
    SessionManager,
    SessionOwnershipError,
)
from mindshiftr.services.intervention_service import (
    EffectivenessTracker,
    InterventionCatalog,
    InterventionSelector,
    SelectionWeights,
)
from mindshiftr.services.response_service import (
    FALLBACK_EMPTY,
    FALLBACK_ERROR,
    ResponseComposer,
    ResponseEnvelope,
    SessionInfo,
)
from mindshiftr.services.safety_service import CrisisDetector, CrisisProtocolBook
from .config import EngineConfig

logger = logging.getLogger(__name__)


THUMBS_UP_RATING = 5.0
THUMBS_DOWN_RATING = 1.0

FALLBACK_SESSION_CONFLICT = "session_conflict"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    """communicationStyle -> communication_style; snake_case keys pass through."""
    return {_CAMEL_BOUNDARY.sub("_", str(key)).lower(): value for key, value in data.items()}


@dataclass(frozen=True)
class TurnRequest:
    """One inbound user message with its optional context."""
    message: Any
    session_id: str
    user_id: str
    preferences: Mapping[str, Any] = field(default_factory=dict)
    vitals: Optional[Mapping[str, Any]] = None
    cultural_context: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TurnRequest":
        """Parse the wire shape {message, sessionId, userId, context}.

        The message itself is not validated here; empty or non-string
        messages get a fallback response from the engine.

        Raises:
            ValueError: Missing sessionId/userId or malformed context
        """
        session_id = data.get("sessionId")
        user_id = data.get("userId")
        if not isinstance(session_id, str) or not session_id:
            raise ValueError("sessionId is required")
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("userId is required")

        context = data.get("context") or {}
        if not isinstance(context, Mapping):
            raise ValueError("context must be an object")
        preferences = context.get("preferences") or {}
        vitals = context.get("vitals")
        if not isinstance(preferences, Mapping):
            raise ValueError("context.preferences must be an object")
        if vitals is not None and not isinstance(vitals, Mapping):
            raise ValueError("context.vitals must be an object")
        cultural_context = context.get("culturalContext")
        if cultural_context is not None and not isinstance(cultural_context, str):
            raise ValueError("context.culturalContext must be a string")

        return cls(
            message=data.get("message"),
            session_id=session_id,
            user_id=user_id,
            preferences=snake_case_keys(preferences),
            vitals=vitals,
            cultural_context=cultural_context,
        )


class TriageEngine:
    """Wires the services together and runs turns."""

    def __init__(
        self,
        lexicon: Optional[Lexicon] = None,
        catalog: Optional[InterventionCatalog] = None,
        session_store: Optional[BaseStore[SessionContext]] = None,
        profile_store: Optional[BaseStore[UserProfile]] = None,
        config: Optional[EngineConfig] = None,
        analyzer: Optional[MessageAnalyzer] = None,
        detector: Optional[CrisisDetector] = None,
        validator: Optional[ClinicalRuleValidator] = None,
        weights: Optional[SelectionWeights] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize engine.

        Args:
            lexicon: Keyword and template tables (default: config path or bundled)
            catalog: Intervention catalog (default: config path or bundled)
            session_store: Store for SessionContext (default: in-memory)
            profile_store: Store for UserProfile (default: in-memory)
            config: Engine settings
            analyzer: Message analyzer override
            detector: Crisis detector override
            validator: Clinical rule validator override
            weights: Ranking weights override
            clock: Time source, injectable for tests
        """
        self.config = config or EngineConfig()
        self._clock = clock or datetime.utcnow
        if not is_pii_salt_configured():
            configure_pii_salt(self.config.pii_salt)

        self.lexicon = lexicon or load_lexicon(self.config.lexicon_path)
        self.catalog = catalog or InterventionCatalog.from_file(
            self.config.catalog_path, lexicon=self.lexicon
        )
        self.sessions = SessionManager(
            session_store or InMemoryStore("sessions"),
            flow_tracker=FlowTracker(self.lexicon),
            clock=self._clock,
        )
        self.tracker = EffectivenessTracker(
            profile_store or InMemoryStore("profiles"),
            catalog=self.catalog,
            clock=self._clock,
        )
        self.analyzer = analyzer or MessageAnalyzer(self.lexicon)
        self.detector = detector or CrisisDetector(self.lexicon)
        self.selector = InterventionSelector(self.catalog, self.tracker, validator, weights)
        self.composer = ResponseComposer(
            self.sessions,
            lexicon=self.lexicon,
            protocol_book=CrisisProtocolBook(self.lexicon),
            catalog=self.catalog,
        )

        self._counters_lock = threading.Lock()
        self._sessions_started = 0
        self._turns = 0
        self._crisis_interventions = 0

        logger.info(
            "TRIAGE_ENGINE_INITIALIZED",
            extra={
                "lexicon_version": self.lexicon.version,
                "catalog_version": self.catalog.version,
                "intervention_count": len(self.catalog),
            }
        )

    def handle_turn(self, request: TurnRequest) -> ResponseEnvelope:
        """Run one conversational turn.

        Never raises for bad input or internal failures: the caller always
        gets a response. A crisis detected before a failure is still
        answered with a crisis response.

        Args:
            request: Inbound message and context

        Returns:
            CrisisResponse or StandardResponse

        Logs:
            - EMPTY_MESSAGE_RECEIVED: message missing or blank
            - TURN_COMPLETED: kind, severity
            - TURN_FAILED (error): unexpected exception
        """
        if not isinstance(request.message, str) or not request.message.strip():
            logger.info(
                "EMPTY_MESSAGE_RECEIVED",
                extra={"session_id_hash": hash_session_id(request.session_id)}
            )
            return self.composer.fallback(FALLBACK_EMPTY, self._owned_session(request))

        session: Optional[SessionContext] = None
        assessment: Optional[CrisisAssessment] = None

        with self.sessions.session_lock(request.session_id):
            try:
                message = Message(
                    text=request.message,
                    session_id=request.session_id,
                    user_id=request.user_id,
                    timestamp=self._clock(),
                )
                try:
                    session = self.sessions.get_or_create(
                        request.session_id,
                        request.user_id,
                        cultural_context=request.cultural_context or "western",
                    )
                except SessionOwnershipError:
                    session = None

                # Crisis screening needs nothing but the message, so it runs
                # before any session or profile state can fail the turn
                analysis = self.analyzer.analyze(message, session, request.vitals)
                assessment = self.detector.detect(message, analysis)

                if session is None:
                    return self._conflicting_turn(request, assessment)

                self.sessions.begin_turn(session, message.text, at=message.timestamp)
                self._count_turn(session)

                if assessment.is_crisis:
                    self.sessions.raise_crisis_level(session, assessment.severity)
                    self._record_crisis(request, assessment)
                    response: ResponseEnvelope = self.composer.compose_crisis(
                        assessment, analysis, session
                    )
                else:
                    profile = self._profile_for(request)
                    recommendation = self.selector.select(analysis, profile, session)
                    response = self.composer.compose(analysis, recommendation, session, profile)

                logger.info(
                    "TURN_COMPLETED",
                    extra={
                        "session_id_hash": hash_session_id(request.session_id),
                        "message_hash": hash_text_for_audit(message.text),
                        "kind": response.kind.value,
                        "severity": response.severity,
                        "turn": session.message_count,
                    }
                )
                return response

            except Exception as e:
                logger.error(
                    "TURN_FAILED",
                    extra={
                        "session_id_hash": hash_session_id(request.session_id),
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "crisis_detected": bool(assessment and assessment.is_crisis),
                    }
                )
                if assessment is not None and assessment.is_crisis:
                    return self.composer.static_crisis(assessment, session)
                return self.composer.fallback(FALLBACK_ERROR, session)

    def record_feedback(
        self,
        user_id: str,
        intervention_key: str,
        success: bool,
        rating: float,
    ) -> EffectivenessRecord:
        """Ingest explicit feedback. Raises FeedbackError when invalid."""
        return self.tracker.record_outcome(user_id, intervention_key, bool(success), rating)

    def record_thumbs(self, user_id: str, intervention_key: str, thumbs_up: bool) -> EffectivenessRecord:
        """Thumbs up counts as success rated 5, thumbs down as failure rated 1."""
        rating = THUMBS_UP_RATING if thumbs_up else THUMBS_DOWN_RATING
        return self.record_feedback(user_id, intervention_key, thumbs_up, rating)

    def record_session_outcome(
        self,
        user_id: str,
        session_id: str,
        rating: float,
        engagement: float,
    ) -> ProgressMarker:
        return self.tracker.record_session_outcome(user_id, session_id, rating, engagement)

    def session_info(self, session_id: str) -> SessionInfo:
        """Current session summary, including the crisis level.

        Raises:
            NotFoundError: Unknown or evicted session
        """
        session = self.sessions.get(session_id)
        if session is None:
            raise NotFoundError("Unknown session")
        return SessionInfo.from_session(session)

    def close_session(self, session_id: str) -> Optional[SessionInfo]:
        """Close a session; returns its final summary or None if unknown."""
        session = self.sessions.close(session_id)
        return SessionInfo.from_session(session) if session else None

    def de_escalate_session(self, session_id: str, new_level: int, reason: str) -> SessionInfo:
        """Explicitly lower a session's crisis level.

        Raises:
            NotFoundError: Unknown session
            ValueError: Level out of range or missing reason
        """
        with self.sessions.session_lock(session_id):
            session = self.sessions.de_escalate(session_id, new_level, reason)
        return SessionInfo.from_session(session)

    def evict_idle_sessions(self, now: Optional[datetime] = None) -> List[str]:
        """Discard sessions idle longer than the configured timeout. Profiles persist."""
        return self.sessions.evict_idle(self.config.session_idle_seconds, now)

    def analytics_report(self) -> Dict[str, Any]:
        report = self.tracker.analytics_report()
        with self._counters_lock:
            report.update({
                "totalSessions": self._sessions_started,
                "totalTurns": self._turns,
                "crisisInterventions": self._crisis_interventions,
            })
        report["activeSessions"] = sum(1 for _ in self.sessions.store.keys())
        return report

    def _conflicting_turn(self, request: TurnRequest, assessment: CrisisAssessment) -> ResponseEnvelope:
        """Answer a message sent on a session owned by someone else.

        The other user's session is never touched. A crisis is still
        answered with crisis resources and recorded on the sender's profile.
        """
        if not assessment.is_crisis:
            return self.composer.fallback(FALLBACK_SESSION_CONFLICT)
        self._record_crisis(request, assessment)
        return self.composer.static_crisis(assessment)

    def _record_crisis(self, request: TurnRequest, assessment: CrisisAssessment) -> None:
        self.tracker.record_crisis_event(request.user_id, request.session_id, assessment)
        with self._counters_lock:
            self._crisis_interventions += 1

    def _profile_for(self, request: TurnRequest) -> UserProfile:
        settings = dict(request.preferences)
        if request.cultural_context and "cultural_context" not in settings:
            settings["cultural_context"] = request.cultural_context
        if settings:
            return self.tracker.apply_profile_settings(request.user_id, settings)
        return self.tracker.get_profile(request.user_id)

    def _owned_session(self, request: TurnRequest) -> Optional[SessionContext]:
        session = self.sessions.get(request.session_id)
        if session is None or session.user_id != request.user_id:
            return None
        return session

    def _count_turn(self, session: SessionContext) -> None:
        with self._counters_lock:
            self._turns += 1
            if session.message_count == 1:
                self._sessions_started += 1
