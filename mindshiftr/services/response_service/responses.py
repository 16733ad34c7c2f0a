"""Outbound response variants.

Every turn produces exactly one ResponseEnvelope subclass. Callers branch
on `kind` rather than probing for optional fields.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from mindshiftr.shared.models import Analysis, CrisisAssessment, Intervention, SessionContext
from mindshiftr.services.safety_service import CrisisResource


class ResponseKind(Enum):
    """Discriminator for response variants."""
    STANDARD = "standard"
    CRISIS = "crisis"


@dataclass(frozen=True)
class SuggestedAction:
    """An app route or contact link offered alongside the message."""
    tool: str
    priority: str = "medium"

    def to_dict(self) -> Dict[str, str]:
        return {"tool": self.tool, "priority": self.priority}


@dataclass(frozen=True)
class SessionInfo:
    turn_count: int = 0
    duration_seconds: float = 0.0
    emotional_journey: Tuple[str, ...] = ()
    techniques_used: Tuple[str, ...] = ()
    crisis_level: int = 0

    @classmethod
    def from_session(cls, session: Optional[SessionContext]) -> "SessionInfo":
        if session is None:
            return cls()
        return cls(
            turn_count=session.message_count,
            duration_seconds=session.duration_seconds(session.last_active_at),
            emotional_journey=tuple(session.emotional_journey),
            techniques_used=tuple(session.techniques_used),
            crisis_level=session.crisis_level,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "turnCount": self.turn_count,
            "duration": round(self.duration_seconds, 1),
            "emotionalJourney": list(self.emotional_journey),
            "techniquesUsed": list(self.techniques_used),
            "crisisLevel": self.crisis_level,
        }


@dataclass(frozen=True)
class ResponseEnvelope:
    """Fields shared by every response variant."""
    kind: ClassVar[ResponseKind]

    response: str
    therapeutic_style: str
    severity: int
    session_info: SessionInfo
    suggested_actions: Tuple[SuggestedAction, ...]

    @property
    def is_crisis(self) -> bool:
        return self.kind == ResponseKind.CRISIS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "response": self.response,
            "therapeuticStyle": self.therapeutic_style,
            "severity": self.severity,
            "isCrisis": self.is_crisis,
            "suggestedActions": [a.to_dict() for a in self.suggested_actions],
            "sessionInfo": self.session_info.to_dict(),
        }


@dataclass(frozen=True)
class StandardResponse(ResponseEnvelope):
    """Personalized, template-filled response for a non-crisis turn.

    analysis is None only for fallback responses (empty input, internal
    error), which also carry a fallback_reason.
    """
    kind: ClassVar[ResponseKind] = ResponseKind.STANDARD

    analysis: Optional[Analysis] = None
    techniques: Tuple[str, ...] = ()
    interventions: Tuple[Intervention, ...] = ()
    follow_up: str = ""
    educational_content: Optional[str] = None
    cultural_adaptation: Optional[Mapping[str, Any]] = None
    reasoning: Tuple[str, ...] = ()
    fallback_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        analysis = self.analysis
        data.update({
            "techniques": list(self.techniques),
            "interventions": [i.to_dict() for i in self.interventions],
            "sentiment": analysis.sentiment.to_dict() if analysis else None,
            "emotions": [e.to_dict() for e in analysis.emotions] if analysis else [],
            "cognitiveDistortions": [d.to_dict() for d in analysis.distortions] if analysis else [],
            "crisisInfo": None,
            "followUp": self.follow_up,
            "reasoning": list(self.reasoning),
        })
        if self.educational_content:
            data["educationalContent"] = self.educational_content
        if self.cultural_adaptation:
            data["culturalAdaptation"] = dict(self.cultural_adaptation)
        if self.fallback_reason:
            data["fallbackReason"] = self.fallback_reason
        return data


@dataclass(frozen=True)
class CrisisResponse(ResponseEnvelope):
    """Canned crisis protocol response. Carries no personalized selection."""
    kind: ClassVar[ResponseKind] = ResponseKind.CRISIS

    assessment: Optional[CrisisAssessment] = None
    resources: Tuple[CrisisResource, ...] = ()
    techniques: Tuple[str, ...] = ()
    follow_up: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        crisis_info = self.assessment.to_dict() if self.assessment else {"isCrisis": True}
        crisis_info["resources"] = [r.to_dict() for r in self.resources]
        data.update({
            "techniques": list(self.techniques),
            "crisisInfo": crisis_info,
            "followUp": self.follow_up,
        })
        return data
