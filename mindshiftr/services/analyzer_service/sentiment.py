"""Lexicon-based sentiment scoring.

Word valences come from the VADER lexicon (vaderSentiment ships it with the
package, no download needed), with clinical overrides from lexicon.yaml.
The score is the plain sum of token valences, so it grows with the amount
of emotional language in a message, and a valence word directly after a
negation is flipped ("not happy" scores negative).
"""
import logging
import re
from functools import lru_cache
from typing import Dict, List, Mapping, Optional

from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

from mindshiftr.shared.lexicon import Lexicon, normalize_text
from mindshiftr.shared.models import SentimentLabel, SentimentScore

logger = logging.getLogger(__name__)


_TOKEN_PATTERN = re.compile(r"[a-z][a-z']*")


@lru_cache(maxsize=1)
def vader_valences() -> Dict[str, float]:
    """Word -> valence map from the bundled VADER lexicon."""
    lexicon = dict(SentimentIntensityAnalyzer().lexicon)
    logger.info("VADER_LEXICON_LOADED", extra={"entry_count": len(lexicon)})
    return lexicon


def tokenize(text: str) -> List[str]:
    return [token.strip("'") for token in _TOKEN_PATTERN.findall(normalize_text(text))]


class LexiconSentimentScorer:
    """Scores messages against a word valence table.

    Args:
        lexicon: Lexicon providing thresholds, negations and valence overrides
        base_valences: Base word valences (default: VADER lexicon)
    """

    def __init__(self, lexicon: Lexicon, base_valences: Optional[Mapping[str, float]] = None):
        valences = dict(base_valences if base_valences is not None else vader_valences())
        overrides = lexicon.get("sentiment", "valence_overrides", default={}) or {}
        valences.update({str(word).lower(): float(value) for word, value in overrides.items()})

        self._valences = valences
        self._negations = frozenset(str(n).lower() for n in lexicon.section("sentiment", "negations"))
        self.positive_threshold = float(lexicon.get("sentiment", "positive_threshold", default=1.0))
        self.negative_threshold = float(lexicon.get("sentiment", "negative_threshold", default=-1.0))

    def classify(self, score: float) -> SentimentLabel:
        if score > self.positive_threshold:
            return SentimentLabel.POSITIVE
        if score < self.negative_threshold:
            return SentimentLabel.NEGATIVE
        return SentimentLabel.NEUTRAL

    def score(self, text: str) -> SentimentScore:
        tokens = tokenize(text)
        total = 0.0
        positive: List[str] = []
        negative: List[str] = []

        for index, token in enumerate(tokens):
            if token in self._negations:
                continue
            valence = self._valences.get(token)
            if valence is None:
                continue
            if index > 0 and tokens[index - 1] in self._negations:
                valence = -valence
            total += valence
            if valence > 0:
                positive.append(token)
            elif valence < 0:
                negative.append(token)

        comparative = total / len(tokens) if tokens else 0.0
        return SentimentScore(
            score=round(total, 3),
            comparative=round(comparative, 4),
            classification=self.classify(total),
            positive_words=tuple(positive),
            negative_words=tuple(negative),
        )
