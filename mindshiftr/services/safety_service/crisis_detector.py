"""Crisis Detector: decides whether a message needs the crisis path.

Four independent signals are OR'd together:
- keyword: a direct crisis keyword ("kill myself", "self harm", ...)
- phrase: a high-risk farewell phrase ("goodbye forever", ...)
- emotional: hopelessness or despair intensity above threshold
- threshold: analyzed severity or sentiment past its crisis threshold

Keywords and phrases are matched on the plain text and again on an
evasion-normalized copy, so "k1ll mys3lf" is caught.
A lethal-method keyword on either text is a keyword signal on its own.
One that only appears after evasion normalization also counts as high
analyzed severity, since the analyzer only sees the plain text.
"""
import logging
from typing import List, Optional, Tuple

from mindshiftr.shared.lexicon import Lexicon, load_lexicon, normalize_text
from mindshiftr.shared.models import (
    Analysis,
    CrisisAction,
    CrisisAssessment,
    CrisisType,
    Message,
)
from mindshiftr.shared.utils import hash_session_id, hash_text_for_audit, hash_user_id
from .config import CrisisThresholds
from .text_normalizer import TextNormalizer

logger = logging.getLogger(__name__)


SIGNAL_KEYWORD = "keyword"
SIGNAL_PHRASE = "phrase"
SIGNAL_EMOTIONAL = "emotional"
SIGNAL_THRESHOLD = "threshold"


class CrisisDetector:
    """Deterministic crisis detection over an analyzed message."""

    def __init__(
        self,
        lexicon: Optional[Lexicon] = None,
        thresholds: Optional[CrisisThresholds] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        """Initialize detector.

        Args:
            lexicon: Keyword tables (default: bundled lexicon)
            thresholds: Signal thresholds and severity weights
            normalizer: Evasion normalizer for the second matching pass
        """
        self.lexicon = lexicon or load_lexicon()
        self.thresholds = thresholds or CrisisThresholds()
        self.normalizer = normalizer or TextNormalizer()

        self._direct = self.lexicon.matcher("crisis", "direct_keywords")
        self._phrases = self.lexicon.matcher("crisis", "high_risk_phrases")
        self._lethal = self.lexicon.matcher("crisis", "lethal_method_keywords")
        self._types = self.lexicon.matchers("crisis", "types")

        logger.info(
            "CRISIS_DETECTOR_INITIALIZED",
            extra={
                "pattern_version": self.thresholds.pattern_version,
                "direct_keyword_count": len(self._direct),
                "phrase_count": len(self._phrases),
            }
        )

    def detect(self, message: Message, analysis: Analysis) -> CrisisAssessment:
        """Assess one message for crisis.

        Args:
            message: The raw message
            analysis: Its analysis

        Returns:
            CrisisAssessment; positive ones always have severity >= 7

        Logs:
            - CRISIS_DETECTED (critical): on a positive assessment
        """
        texts = self._candidate_texts(message.text)

        keywords = _find_all(self._direct, texts)
        phrases = _find_all(self._phrases, texts)
        lethal = _find_all(self._lethal, texts)

        signals: List[str] = []
        if keywords or lethal:
            signals.append(SIGNAL_KEYWORD)
        if phrases:
            signals.append(SIGNAL_PHRASE)
        if self._emotional_signal(analysis):
            signals.append(SIGNAL_EMOTIONAL)
        if self._threshold_signal(analysis):
            signals.append(SIGNAL_THRESHOLD)

        if not signals:
            return CrisisAssessment.negative(analysis.severity)

        evaded = bool(lethal) and not _find_all(self._lethal, texts[:1])
        severity = self._crisis_severity(analysis, bool(lethal), evaded)
        crisis_type = self._classify(texts)
        action = self._recommended_action(severity)

        assessment = CrisisAssessment(
            is_crisis=True,
            severity=severity,
            crisis_type=crisis_type,
            recommended_action=action,
            urgency="immediate" if severity > self.thresholds.emergency_services_above else "high",
            signals=tuple(signals),
            matched_keywords=tuple(dict.fromkeys(keywords + phrases + lethal)),
        )

        logger.critical(
            "CRISIS_DETECTED",
            extra={
                "message_id": message.message_id,
                "user_id_hash": hash_user_id(message.user_id),
                "session_id_hash": hash_session_id(message.session_id),
                "text_hash": hash_text_for_audit(message.text),
                "crisis_type": crisis_type.value,
                "severity": severity,
                "signals": list(signals),
                "matched_keyword_count": len(assessment.matched_keywords),
                "action": action.value,
            }
        )
        return assessment

    def _candidate_texts(self, text: str) -> Tuple[str, ...]:
        plain = normalize_text(text)
        evasion = self.normalizer.normalize(text)
        return (plain,) if evasion == plain else (plain, evasion)

    def _emotional_signal(self, analysis: Analysis) -> bool:
        return (
            analysis.emotion_intensity("hopelessness") > self.thresholds.hopelessness_intensity
            or analysis.emotion_intensity("despair") > self.thresholds.despair_intensity
        )

    def _threshold_signal(self, analysis: Analysis) -> bool:
        return (
            analysis.severity > self.thresholds.analysis_severity
            or analysis.sentiment.score < self.thresholds.sentiment_score
        )

    def _crisis_severity(self, analysis: Analysis, lethal: bool, evaded: bool = False) -> int:
        t = self.thresholds
        severity = t.base_severity
        if lethal:
            severity += t.lethal_keyword_weight
        if evaded or analysis.severity > t.analysis_severity:
            severity += t.high_analysis_severity_weight
        if analysis.has_distortion("all_or_nothing"):
            severity += t.all_or_nothing_weight
        return max(t.minimum_crisis_severity, min(severity, 10))

    def _classify(self, texts: Tuple[str, ...]) -> CrisisType:
        for crisis_type, matcher in self._types.items():
            if any(matcher.matches(text) for text in texts):
                return CrisisType(crisis_type)
        return CrisisType.SEVERE_DISTRESS

    def _recommended_action(self, severity: int) -> CrisisAction:
        if severity > self.thresholds.emergency_services_above:
            return CrisisAction.IMMEDIATE_EMERGENCY_SERVICES
        if severity > self.thresholds.hotline_above:
            return CrisisAction.CRISIS_HOTLINE_CONTACT
        return CrisisAction.PROFESSIONAL_REFERRAL


def _find_all(matcher, texts: Tuple[str, ...]) -> List[str]:
    found: List[str] = []
    for text in texts:
        found.extend(k for k in matcher.find(text) if k not in found)
    return found
