"""Message analysis and crisis assessment domain models.

Everything produced while reading a single message is immutable: once an
Analysis or CrisisAssessment is built it is passed downstream unchanged.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SentimentLabel(Enum):
    """Coarse sentiment classification of a message."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Intent(Enum):
    """What the user appears to be doing with this message."""
    SEEKING_SUPPORT = "seeking_support"
    SHARING_FEELINGS = "sharing_feelings"
    SEEKING_INFORMATION = "seeking_information"
    CRISIS = "crisis"
    PRACTICING_TECHNIQUE = "practicing_technique"
    REPORTING_PROGRESS = "reporting_progress"
    GENERAL = "general"


class CrisisType(Enum):
    """Crisis classification used to pick a crisis protocol."""
    SUICIDE_PREVENTION = "suicide-prevention"
    SELF_HARM = "self-harm"
    SEVERE_DISTRESS = "severe-distress"
    NONE = "none"


class CrisisAction(Enum):
    """Recommended escalation for a positive crisis assessment."""
    IMMEDIATE_EMERGENCY_SERVICES = "immediate_emergency_services"
    CRISIS_HOTLINE_CONTACT = "crisis_hotline_contact"
    PROFESSIONAL_REFERRAL = "professional_referral"


@dataclass(frozen=True)
class Message:
    """One line of user input within a session."""
    text: str
    session_id: str
    user_id: str
    message_id: str = field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:16]}")
    timestamp: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class SentimentScore:
    """Lexicon sentiment of a message.

    score is the summed valence of matched words, comparative is the score
    normalized by token count.
    """
    score: float
    comparative: float
    classification: SentimentLabel
    positive_words: Tuple[str, ...] = ()
    negative_words: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": round(self.score, 3),
            "comparative": round(self.comparative, 3),
            "classification": self.classification.value,
            "positive": list(self.positive_words),
            "negative": list(self.negative_words),
        }


@dataclass(frozen=True)
class EmotionSignal:
    """A detected emotion with its keyword-coverage intensity."""
    emotion: str
    intensity: float
    triggers: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"Intensity must be 0.0-1.0, got {self.intensity}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "emotion": self.emotion,
            "intensity": round(self.intensity, 3),
            "triggers": list(self.triggers),
        }


@dataclass(frozen=True)
class DistortionSignal:
    """A cognitive distortion pattern found in the message."""
    distortion_type: str
    frequency: int
    examples: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.distortion_type,
            "frequency": self.frequency,
            "examples": list(self.examples),
        }


@dataclass(frozen=True)
class LinguisticMarkers:
    """Counts of surface features that hint at cognitive style."""
    first_person: int = 0
    questions: int = 0
    exclamations: int = 0
    negations: int = 0
    absolutes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "first_person": self.first_person,
            "questions": self.questions,
            "exclamations": self.exclamations,
            "negations": self.negations,
            "absolutes": self.absolutes,
        }


@dataclass(frozen=True)
class TemporalContext:
    """When the message is situated, in the text and in the session."""
    reference: str = "present"
    seconds_since_last_message: Optional[float] = None
    session_duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "seconds_since_last_message": self.seconds_since_last_message,
            "session_duration_seconds": round(self.session_duration_seconds, 1),
        }


@dataclass(frozen=True)
class Analysis:
    """Structured reading of one message.

    Emotions are ordered by intensity (highest first) and never empty: a
    message with no emotional keywords carries a single neutral signal.
    """
    message_id: str
    text: str
    sentiment: SentimentScore
    emotions: Tuple[EmotionSignal, ...]
    distortions: Tuple[DistortionSignal, ...]
    intent: Intent
    severity: int
    topics: Tuple[str, ...] = ()
    categories: Tuple[str, ...] = ("general",)
    markers: LinguisticMarkers = field(default_factory=LinguisticMarkers)
    risk_factors: Tuple[str, ...] = ()
    protective_factors: Tuple[str, ...] = ()
    temporal: TemporalContext = field(default_factory=TemporalContext)
    crisis_keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0 <= self.severity <= 10:
            raise ValueError(f"Severity must be 0-10, got {self.severity}")
        if not self.emotions:
            raise ValueError("Analysis requires at least one emotion signal")

    @property
    def primary_emotion(self) -> EmotionSignal:
        return self.emotions[0]

    @property
    def primary_category(self) -> str:
        return self.categories[0] if self.categories else "general"

    def emotion_intensity(self, emotion: str) -> float:
        """Intensity of the named emotion, 0.0 when not detected."""
        for signal in self.emotions:
            if signal.emotion == emotion:
                return signal.intensity
        return 0.0

    def has_distortion(self, distortion_type: str) -> bool:
        return any(d.distortion_type == distortion_type for d in self.distortions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "sentiment": self.sentiment.to_dict(),
            "emotions": [e.to_dict() for e in self.emotions],
            "distortions": [d.to_dict() for d in self.distortions],
            "intent": self.intent.value,
            "severity": self.severity,
            "topics": list(self.topics),
            "categories": list(self.categories),
            "markers": self.markers.to_dict(),
            "risk_factors": list(self.risk_factors),
            "protective_factors": list(self.protective_factors),
            "temporal": self.temporal.to_dict(),
        }


@dataclass(frozen=True)
class CrisisAssessment:
    """Outcome of crisis detection for one message.

    A positive assessment always carries a severity of at least 7 and a
    recommended action. A negative one carries type NONE and no action.
    """
    is_crisis: bool
    severity: int
    crisis_type: CrisisType = CrisisType.NONE
    recommended_action: Optional[CrisisAction] = None
    urgency: str = "none"
    signals: Tuple[str, ...] = ()
    matched_keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0 <= self.severity <= 10:
            raise ValueError(f"Severity must be 0-10, got {self.severity}")
        if self.is_crisis:
            if self.severity < 7:
                raise ValueError(f"Crisis severity must be >= 7, got {self.severity}")
            if self.recommended_action is None:
                raise ValueError("Crisis assessment requires a recommended action")
            if self.crisis_type == CrisisType.NONE:
                raise ValueError("Crisis assessment requires a crisis type")

    @classmethod
    def negative(cls, severity: int = 0) -> "CrisisAssessment":
        """Assessment for a message that showed no crisis signal."""
        return cls(is_crisis=False, severity=min(max(severity, 0), 10))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCrisis": self.is_crisis,
            "severity": self.severity,
            "type": self.crisis_type.value,
            "recommendedAction": (
                self.recommended_action.value if self.recommended_action else None
            ),
            "urgency": self.urgency,
            "signals": list(self.signals),
        }
