"""Message Analyzer: turns one line of user text into a structured Analysis.

Pure function of (message, session snapshot, vitals) against the lexicon
tables. The session is only read, for temporal context and prior crisis
history, and must be passed before the current turn is recorded on it.
"""
import logging
from typing import Any, List, Mapping, Optional, Tuple

from mindshiftr.shared.lexicon import Lexicon, load_lexicon, normalize_text
from mindshiftr.shared.models import (
    Analysis,
    DistortionSignal,
    EmotionSignal,
    Intent,
    LinguisticMarkers,
    Message,
    SentimentScore,
    SessionContext,
    TemporalContext,
)
from mindshiftr.shared.utils import hash_text_for_audit
from .config import AnalyzerConfig
from .sentiment import LexiconSentimentScorer

logger = logging.getLogger(__name__)


class MessageAnalyzer:
    """Deterministic rule-based analyzer.

    Analyzing the same message against the same session snapshot always
    yields an equal Analysis.
    """

    def __init__(
        self,
        lexicon: Optional[Lexicon] = None,
        config: Optional[AnalyzerConfig] = None,
        sentiment_scorer: Optional[LexiconSentimentScorer] = None,
    ):
        """Initialize analyzer.

        Args:
            lexicon: Keyword tables (default: bundled lexicon)
            config: Severity scoring rules
            sentiment_scorer: Sentiment scorer (default: VADER-backed scorer)
        """
        self.lexicon = lexicon or load_lexicon()
        self.config = config or AnalyzerConfig()
        self.sentiment_scorer = sentiment_scorer or LexiconSentimentScorer(self.lexicon)

        self._emotions = self.lexicon.matchers("emotions")
        self._distortions = self.lexicon.matchers("distortions")
        self._intents = self.lexicon.matchers("intents")
        self._topics = self.lexicon.matchers("topics")
        self._temporal = self.lexicon.matchers("temporal")
        self._risk_factors = self.lexicon.matchers("risk_factors")
        self._protective_factors = self.lexicon.matchers("protective_factors")
        self._intensifiers = self.lexicon.matcher("intensifiers")
        self._crisis_keywords = self.lexicon.matcher("crisis", "direct_keywords")
        self._lethal_keywords = self.lexicon.matcher("crisis", "lethal_method_keywords")
        self._first_person = self.lexicon.matcher("linguistic", "first_person")
        self._negations = self.lexicon.matcher("linguistic", "negations")
        self._absolutes = self.lexicon.matcher("linguistic", "absolutes")
        self._category_rules = self.lexicon.section("categories")

        logger.info(
            "MESSAGE_ANALYZER_INITIALIZED",
            extra={
                "lexicon_version": self.lexicon.version,
                "emotion_count": len(self._emotions),
                "distortion_count": len(self._distortions),
            }
        )

    def analyze(
        self,
        message: Message,
        session: Optional[SessionContext] = None,
        vitals: Optional[Mapping[str, Any]] = None,
    ) -> Analysis:
        """Analyze a single message.

        Args:
            message: The user message
            session: Session snapshot before this turn, if any
            vitals: Optional wearable readings (heart_rate, sleep_hours)

        Returns:
            Immutable Analysis

        Logs:
            - MESSAGE_ANALYZED: severity, intent and signal counts
        """
        text = normalize_text(message.text)

        sentiment = self.sentiment_scorer.score(text)
        emotions = self._detect_emotions(text)
        distortions = self._detect_distortions(text)
        crisis_keywords = tuple(
            dict.fromkeys(self._crisis_keywords.find(text) + self._lethal_keywords.find(text))
        )
        severity = self._score_severity(text, sentiment, crisis_keywords)
        topics = tuple(name for name, m in self._topics.items() if m.matches(text))

        analysis = Analysis(
            message_id=message.message_id,
            text=message.text,
            sentiment=sentiment,
            emotions=emotions,
            distortions=distortions,
            intent=self._detect_intent(text),
            severity=severity,
            topics=topics,
            categories=self._categorize(emotions, distortions, topics),
            markers=self._linguistic_markers(text),
            risk_factors=self._risk_factors_for(text, session, vitals),
            protective_factors=tuple(
                name for name, m in self._protective_factors.items() if m.matches(text)
            ),
            temporal=self._temporal_context(text, message, session),
            crisis_keywords=crisis_keywords,
        )

        logger.info(
            "MESSAGE_ANALYZED",
            extra={
                "message_id": message.message_id,
                "text_hash": hash_text_for_audit(message.text),
                "severity": severity,
                "intent": analysis.intent.value,
                "sentiment": sentiment.classification.value,
                "emotion_count": len(emotions),
                "distortion_count": len(distortions),
            }
        )
        return analysis

    def _detect_emotions(self, text: str) -> Tuple[EmotionSignal, ...]:
        signals = []
        for emotion, matcher in self._emotions.items():
            found = matcher.find(text)
            if found:
                signals.append(EmotionSignal(
                    emotion=emotion,
                    intensity=min(len(found) / len(matcher), 1.0),
                    triggers=tuple(found),
                ))

        if not signals:
            return (EmotionSignal(emotion="neutral", intensity=self.config.neutral_intensity),)

        # sorted() is stable, so ties keep table order
        return tuple(sorted(signals, key=lambda s: s.intensity, reverse=True))

    def _detect_distortions(self, text: str) -> Tuple[DistortionSignal, ...]:
        signals = []
        for distortion, matcher in self._distortions.items():
            found = matcher.find(text)
            if found:
                signals.append(DistortionSignal(
                    distortion_type=distortion,
                    frequency=matcher.count(text),
                    examples=tuple(found),
                ))
        return tuple(signals)

    def _detect_intent(self, text: str) -> Intent:
        for intent, matcher in self._intents.items():
            if matcher.matches(text):
                return Intent(intent)
        return Intent.GENERAL

    def _score_severity(
        self,
        text: str,
        sentiment: SentimentScore,
        crisis_keywords: Tuple[str, ...],
    ) -> int:
        if crisis_keywords:
            return min(self.config.crisis_keyword_severity, 10)

        severity = self.config.baseline_severity
        if sentiment.score < self.config.moderate_negative_sentiment:
            severity += self.config.sentiment_step
        if sentiment.score < self.config.strong_negative_sentiment:
            severity += self.config.sentiment_step
        if self._intensifiers.matches(text):
            severity += self.config.intensifier_step

        return max(0, min(severity, 10))

    def _categorize(
        self,
        emotions: Tuple[EmotionSignal, ...],
        distortions: Tuple[DistortionSignal, ...],
        topics: Tuple[str, ...],
    ) -> Tuple[str, ...]:
        emotion_names = {e.emotion for e in emotions}
        topic_names = set(topics)
        categories: List[str] = []

        for rule in self._category_rules:
            matched = (
                (rule.get("any_distortion") and bool(distortions))
                or bool(emotion_names.intersection(rule.get("emotions", ())))
                or bool(topic_names.intersection(rule.get("topics", ())))
            )
            if matched and rule["category"] not in categories:
                categories.append(rule["category"])

        if "general" not in categories:
            categories.append("general")
        return tuple(categories)

    def _linguistic_markers(self, text: str) -> LinguisticMarkers:
        return LinguisticMarkers(
            first_person=self._first_person.count(text),
            questions=text.count("?"),
            exclamations=text.count("!"),
            negations=self._negations.count(text),
            absolutes=self._absolutes.count(text),
        )

    def _risk_factors_for(
        self,
        text: str,
        session: Optional[SessionContext],
        vitals: Optional[Mapping[str, Any]],
    ) -> Tuple[str, ...]:
        factors: List[str] = []
        if session is not None and session.crisis_level > 0:
            factors.append("previous_crisis")

        factors.extend(name for name, m in self._risk_factors.items() if m.matches(text))

        if vitals:
            heart_rate = _vital(vitals, "heart_rate")
            limit = self.lexicon.get("vitals", "elevated_heart_rate_bpm", default=100)
            if heart_rate is not None and heart_rate > limit:
                factors.append("elevated_heart_rate")

            sleep_hours = _vital(vitals, "sleep_hours")
            minimum = self.lexicon.get("vitals", "sleep_deprivation_hours", default=5)
            if sleep_hours is not None and sleep_hours < minimum:
                factors.append("sleep_deprivation")

        return tuple(dict.fromkeys(factors))

    def _temporal_context(
        self,
        text: str,
        message: Message,
        session: Optional[SessionContext],
    ) -> TemporalContext:
        reference = "present"
        for name, matcher in self._temporal.items():
            if matcher.matches(text):
                reference = name
                break

        since_last = None
        duration = 0.0
        if session is not None:
            if session.last_message_at is not None:
                since_last = max((message.timestamp - session.last_message_at).total_seconds(), 0.0)
            duration = session.duration_seconds(message.timestamp)

        return TemporalContext(
            reference=reference,
            seconds_since_last_message=since_last,
            session_duration_seconds=duration,
        )


def _vital(vitals: Mapping[str, Any], key: str) -> Optional[float]:
    """Read a numeric vital, ignoring malformed values."""
    value = vitals.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("VITAL_VALUE_IGNORED", extra={"vital": key, "value_type": type(value).__name__})
        return None
