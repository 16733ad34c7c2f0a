"""Shared domain models for the MindShiftr triage engine."""
from .intervention import EffectivenessRecord, EvidenceTier, Intervention
from .state import (
    ClinicalHistory,
    CommunicationStyle,
    ConversationStage,
    CrisisEvent,
    DeEscalation,
    Depth,
    FlowState,
    InterventionUse,
    Momentum,
    ProgressMarker,
    SessionContext,
    SessionOutcome,
    StageTransition,
    UserPreferences,
    UserProfile,
)
from .triage import (
    Analysis,
    CrisisAction,
    CrisisAssessment,
    CrisisType,
    DistortionSignal,
    EmotionSignal,
    Intent,
    LinguisticMarkers,
    Message,
    SentimentLabel,
    SentimentScore,
    TemporalContext,
)

__all__ = [
    "Analysis",
    "ClinicalHistory",
    "CommunicationStyle",
    "ConversationStage",
    "CrisisAction",
    "CrisisAssessment",
    "CrisisEvent",
    "CrisisType",
    "DeEscalation",
    "Depth",
    "DistortionSignal",
    "EffectivenessRecord",
    "EmotionSignal",
    "EvidenceTier",
    "FlowState",
    "Intent",
    "Intervention",
    "InterventionUse",
    "LinguisticMarkers",
    "Message",
    "Momentum",
    "ProgressMarker",
    "SentimentLabel",
    "SentimentScore",
    "SessionContext",
    "SessionOutcome",
    "StageTransition",
    "TemporalContext",
    "UserPreferences",
    "UserProfile",
]
