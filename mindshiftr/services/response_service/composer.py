"""Response Composer.

Template fill only, no generation: wording comes from the lexicon's
responses section, chosen deterministically from the turn number so a
replayed conversation produces the same replies. Composing a response
records the turn in the session's logs.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from mindshiftr.shared.lexicon import Lexicon, load_lexicon
from mindshiftr.shared.models import (
    Analysis,
    CommunicationStyle,
    CrisisAction,
    CrisisAssessment,
    SessionContext,
    UserProfile,
)
from mindshiftr.shared.utils import hash_session_id
from mindshiftr.services.conversation_service import SessionManager
from mindshiftr.services.intervention_service import InterventionCatalog, RankedRecommendation
from mindshiftr.services.safety_service import (
    STATIC_CRISIS_MESSAGE,
    STATIC_RESOURCES,
    CrisisProtocolBook,
)
from .responses import CrisisResponse, SessionInfo, StandardResponse, SuggestedAction

logger = logging.getLogger(__name__)


CRISIS_STYLE = "crisis"
CRISIS_ACTIONS = (
    SuggestedAction(tool="/crisis", priority="immediate"),
    SuggestedAction(tool="tel:988", priority="immediate"),
)
EMERGENCY_ACTION = SuggestedAction(tool="tel:911", priority="immediate")
DEFAULT_CRISIS_FOLLOW_UP = "Are you somewhere safe right now?"

FALLBACK_EMPTY = "empty_message"
FALLBACK_ERROR = "internal_error"


class ResponseComposer:
    """Builds StandardResponse and CrisisResponse payloads."""

    def __init__(
        self,
        session_manager: SessionManager,
        lexicon: Optional[Lexicon] = None,
        protocol_book: Optional[CrisisProtocolBook] = None,
        catalog: Optional[InterventionCatalog] = None,
    ):
        self.session_manager = session_manager
        self.lexicon = lexicon or load_lexicon()
        self.protocol_book = protocol_book or CrisisProtocolBook(self.lexicon)
        self.catalog = catalog or InterventionCatalog.from_file(lexicon=self.lexicon)
        self._responses = self.lexicon.section("responses")

    def compose(
        self,
        analysis: Analysis,
        recommendation: RankedRecommendation,
        session: SessionContext,
        profile: Optional[UserProfile] = None,
    ) -> StandardResponse:
        """Assemble the response for a non-crisis turn.

        Args:
            analysis: Analysis of the current message
            recommendation: Selector output
            session: Session the turn belongs to (already counted)
            profile: User profile, for the communication style

        Returns:
            StandardResponse
        """
        style = profile.preferences.communication_style if profile else CommunicationStyle.EMPATHETIC
        turn = session.message_count
        intervention = recommendation.intervention

        parts = []
        opener = (self._responses.get("stage_openers") or {}).get(session.flow.stage.value)
        if opener:
            parts.append(opener)
        parts.append(self._fill_template(style, analysis, recommendation, turn))
        parts.append(intervention.response)

        self.session_manager.record_turn(
            session, analysis.sentiment.classification, [intervention.technique]
        )

        return StandardResponse(
            response=" ".join(parts),
            therapeutic_style=style.value,
            severity=analysis.severity,
            session_info=SessionInfo.from_session(session),
            suggested_actions=tuple(
                SuggestedAction(tool=t["tool"], priority=t["priority"])
                for t in self.catalog.applicability.tools_for(analysis)
            ),
            analysis=analysis,
            techniques=recommendation.techniques,
            interventions=(intervention,),
            follow_up=self._follow_up(analysis, intervention.follow_up, turn),
            educational_content=self._education(analysis),
            cultural_adaptation=self._cultural_adaptation(session.cultural_context),
            reasoning=recommendation.reasoning,
        )

    def compose_crisis(
        self,
        assessment: CrisisAssessment,
        analysis: Optional[Analysis],
        session: SessionContext,
    ) -> CrisisResponse:
        """Assemble the canned crisis response for the assessed crisis type.

        Logs:
            - CRISIS_RESPONSE_COMPOSED: crisis type, severity, action
        """
        protocol = self.protocol_book.protocol_for(assessment.crisis_type)

        if analysis is not None:
            self.session_manager.record_turn(
                session, analysis.sentiment.classification, protocol.techniques
            )

        logger.warning(
            "CRISIS_RESPONSE_COMPOSED",
            extra={
                "session_id_hash": hash_session_id(session.session_id),
                "crisis_type": assessment.crisis_type.value,
                "severity": assessment.severity,
                "recommended_action": (
                    assessment.recommended_action.value if assessment.recommended_action else None
                ),
            }
        )

        return CrisisResponse(
            response=protocol.message_for_turn(session.message_count),
            therapeutic_style=CRISIS_STYLE,
            severity=assessment.severity,
            session_info=SessionInfo.from_session(session),
            suggested_actions=_crisis_actions(assessment),
            assessment=assessment,
            resources=protocol.resources,
            techniques=protocol.techniques,
            follow_up=str(self.lexicon.get("crisis", "follow_up", default=DEFAULT_CRISIS_FOLLOW_UP)),
        )

    def static_crisis(
        self,
        assessment: CrisisAssessment,
        session: Optional[SessionContext] = None,
    ) -> CrisisResponse:
        """Crisis response that touches neither the lexicon nor the session logs."""
        return CrisisResponse(
            response=STATIC_CRISIS_MESSAGE,
            therapeutic_style=CRISIS_STYLE,
            severity=assessment.severity,
            session_info=SessionInfo.from_session(session),
            suggested_actions=_crisis_actions(assessment),
            assessment=assessment,
            resources=STATIC_RESOURCES,
            techniques=("crisis_intervention",),
            follow_up=DEFAULT_CRISIS_FOLLOW_UP,
        )

    def fallback(
        self,
        reason: str,
        session: Optional[SessionContext] = None,
        severity: int = 5,
    ) -> StandardResponse:
        """Supportive response used when no analysis is available.

        Args:
            reason: FALLBACK_EMPTY or FALLBACK_ERROR
            session: Session, when one was resolved
            severity: Severity to report
        """
        key = "empty_message" if reason == FALLBACK_EMPTY else "error_fallback"
        default = self.catalog.default
        return StandardResponse(
            response=str(self._responses.get(key) or default.response),
            therapeutic_style=CommunicationStyle.EMPATHETIC.value,
            severity=severity,
            session_info=SessionInfo.from_session(session),
            suggested_actions=(),
            techniques=(default.technique,),
            interventions=(default,),
            follow_up=self._pick(self._follow_ups().get("default"), 0),
            fallback_reason=reason,
        )

    def _fill_template(
        self,
        style: CommunicationStyle,
        analysis: Analysis,
        recommendation: RankedRecommendation,
        turn: int,
    ) -> str:
        templates = self._responses["templates"].get(style.value) or self._responses["templates"]["empathetic"]
        primary = analysis.primary_emotion.emotion
        group = "neutral" if primary == "neutral" else "emotional"
        template = self._pick(templates.get(group), turn)

        words = self._responses.get("emotion_words") or {}
        values = {
            "emotion": words.get(primary, primary),
            "difficulty": self._difficulty(analysis.severity),
            "validation": self._pick(self._responses.get("validations"), turn),
            "technique": recommendation.intervention.technique.replace("_", " "),
        }
        return template.format_map(values).strip()

    def _difficulty(self, severity: int) -> str:
        for entry in self._responses.get("difficulty") or ():
            if severity > int(entry["above"]):
                return str(entry["label"])
        return "difficult"

    def _follow_ups(self) -> Dict[str, List[str]]:
        return self._responses.get("follow_ups") or {}

    def _follow_up(self, analysis: Analysis, intervention_follow_up: str, turn: int) -> str:
        follow_ups = self._follow_ups()
        if analysis.distortions and follow_ups.get("distortions"):
            return self._pick(follow_ups["distortions"], turn)
        primary = analysis.primary_emotion.emotion
        if follow_ups.get(primary):
            return self._pick(follow_ups[primary], turn)
        if intervention_follow_up:
            return intervention_follow_up
        return self._pick(follow_ups.get("default"), turn)

    def _education(self, analysis: Analysis) -> Optional[str]:
        education = self.lexicon.get("education", default={}) or {}
        notes = [
            education[d.distortion_type]
            for d in analysis.distortions
            if d.distortion_type in education
        ]
        return " ".join(dict.fromkeys(notes)) or None

    def _cultural_adaptation(self, cultural_context: str) -> Optional[Dict[str, Any]]:
        entry = self.lexicon.get("cultural_adaptations", cultural_context)
        if not entry:
            return None
        return {
            "context": cultural_context,
            "communication": entry.get("communication"),
            "notes": list(entry.get("notes") or ()),
        }

    @staticmethod
    def _pick(options: Optional[Sequence[str]], turn: int) -> str:
        if not options:
            return ""
        return str(options[turn % len(options)])


def _crisis_actions(assessment: CrisisAssessment):
    actions = list(CRISIS_ACTIONS)
    if assessment.recommended_action == CrisisAction.IMMEDIATE_EMERGENCY_SERVICES:
        actions.append(EMERGENCY_ACTION)
    return tuple(actions)
