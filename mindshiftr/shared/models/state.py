"""Session and user profile state.

Unlike analysis results these objects are long-lived and owned by a store.
SessionContext and UserProfile are mutable; their history lists are only
ever appended to, except for the capped lists which drop their oldest
entries.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .intervention import EffectivenessRecord
from .triage import CrisisType


MAX_CRISIS_EVENTS = 50
MAX_PROGRESS_MARKERS = 100


class ConversationStage(Enum):
    INTRODUCTION = "introduction"
    ASSESSMENT = "assessment"
    INTERVENTION = "intervention"
    REFLECTION = "reflection"
    PLANNING = "planning"
    CLOSURE = "closure"


class Momentum(Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class Depth(Enum):
    SURFACE = "surface"
    MODERATE = "moderate"
    DEEP = "deep"


class CommunicationStyle(Enum):
    """Response template family a user prefers."""
    EMPATHETIC = "empathetic"
    DIRECT = "direct"
    SOCRATIC = "socratic"
    MINDFULNESS = "mindfulness"


@dataclass(frozen=True)
class StageTransition:
    """One evaluated edge of the conversation flow graph."""
    from_stage: ConversationStage
    to_stage: ConversationStage
    confidence: float
    trigger: Optional[str] = None

    @property
    def is_self_loop(self) -> bool:
        return self.from_stage == self.to_stage


@dataclass(frozen=True)
class FlowState:
    """Where the conversation is, how it is moving, and how deep it goes."""
    stage: ConversationStage = ConversationStage.INTRODUCTION
    momentum: Momentum = Momentum.STABLE
    depth: Depth = Depth.SURFACE
    emotional_tone: str = "neutral"
    tone_trend: str = "steady"
    last_transition: Optional[StageTransition] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "stage": self.stage.value,
            "momentum": self.momentum.value,
            "depth": self.depth.value,
            "emotionalTone": self.emotional_tone,
            "toneTrend": self.tone_trend,
        }
        if self.last_transition is not None:
            result["lastTransition"] = {
                "from": self.last_transition.from_stage.value,
                "to": self.last_transition.to_stage.value,
                "confidence": self.last_transition.confidence,
            }
        return result


@dataclass(frozen=True)
class DeEscalation:
    """Explicit lowering of a session's crisis level."""
    previous_level: int
    new_level: int
    reason: str
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class SessionContext:
    """Per-session conversational state.

    crisis_level only rises during a session; lowering it requires an
    explicit de-escalation, which is recorded in de_escalations.
    """
    session_id: str
    user_id: str
    started_at: datetime = field(default_factory=datetime.utcnow)
    last_message_at: Optional[datetime] = None
    last_active_at: datetime = field(default_factory=datetime.utcnow)
    message_count: int = 0
    crisis_level: int = 0
    emotional_journey: List[str] = field(default_factory=list)
    techniques_used: List[str] = field(default_factory=list)
    flow: FlowState = field(default_factory=FlowState)
    language: str = "en"
    cultural_context: str = "western"
    de_escalations: List[DeEscalation] = field(default_factory=list)
    closed: bool = False

    def duration_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.utcnow()
        return max((now - self.started_at).total_seconds(), 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "startedAt": self.started_at.isoformat(),
            "messageCount": self.message_count,
            "crisisLevel": self.crisis_level,
            "emotionalJourney": list(self.emotional_journey),
            "techniquesUsed": list(self.techniques_used),
            "flow": self.flow.to_dict(),
            "language": self.language,
            "culturalContext": self.cultural_context,
            "closed": self.closed,
        }


@dataclass
class UserPreferences:
    communication_style: CommunicationStyle = CommunicationStyle.EMPATHETIC
    language: str = "en"
    cultural_context: str = "western"
    preferred_techniques: List[str] = field(default_factory=list)


@dataclass
class ClinicalHistory:
    """Clinician-supplied facts the validator must respect."""
    trauma_history: bool = False
    stabilized: bool = False
    psychosis_symptoms: bool = False
    conditions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class InterventionUse:
    """One rated use of an intervention by a user."""
    intervention_key: str
    success: bool
    rating: float
    recorded_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class CrisisEvent:
    session_id: str
    severity: int
    crisis_type: CrisisType
    occurred_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class SessionOutcome:
    """End-of-session self report."""
    session_id: str
    rating: float
    engagement: float
    recorded_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if not 0.0 <= self.rating <= 5.0:
            raise ValueError(f"Rating must be 0.0-5.0, got {self.rating}")
        if not 0.0 <= self.engagement <= 1.0:
            raise ValueError(f"Engagement must be 0.0-1.0, got {self.engagement}")


@dataclass(frozen=True)
class ProgressMarker:
    """Snapshot of a user's trajectory computed after a session outcome."""
    engagement: float
    improvement: str
    stability: str
    current_risk: str
    recorded_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engagement": self.engagement,
            "improvement": self.improvement,
            "stability": self.stability,
            "currentRisk": self.current_risk,
            "recordedAt": self.recorded_at.isoformat(),
        }


@dataclass
class UserProfile:
    """Long-lived per-user personalization and history."""
    user_id: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    preferences: UserPreferences = field(default_factory=UserPreferences)
    clinical: ClinicalHistory = field(default_factory=ClinicalHistory)
    effectiveness: Dict[str, EffectivenessRecord] = field(default_factory=dict)
    intervention_history: List[InterventionUse] = field(default_factory=list)
    crisis_events: List[CrisisEvent] = field(default_factory=list)
    session_outcomes: List[SessionOutcome] = field(default_factory=list)
    progress_markers: List[ProgressMarker] = field(default_factory=list)

    def add_crisis_event(self, event: CrisisEvent) -> None:
        self.crisis_events.append(event)
        del self.crisis_events[:-MAX_CRISIS_EVENTS]
        self.updated_at = datetime.utcnow()

    def add_progress_marker(self, marker: ProgressMarker) -> None:
        self.progress_markers.append(marker)
        del self.progress_markers[:-MAX_PROGRESS_MARKERS]
        self.updated_at = datetime.utcnow()

    def recent_uses(self, intervention_key: str, limit: int = 5) -> List[InterventionUse]:
        """Most recent rated uses of one intervention, oldest first."""
        uses = [u for u in self.intervention_history if u.intervention_key == intervention_key]
        return uses[-limit:]
