"""Tests for LexiconSentimentScorer."""
import pytest

from mindshiftr.shared.lexicon import DEFAULT_LEXICON_PATH, Lexicon, load_lexicon, read_yaml
from mindshiftr.shared.models import SentimentLabel
from mindshiftr.services.analyzer_service.sentiment import LexiconSentimentScorer, tokenize


BASE_VALENCES = {
    "happy": 2.7,
    "sad": -2.1,
    "terrible": -2.5,
    "good": 1.9,
}


@pytest.fixture
def lexicon():
    return load_lexicon()


@pytest.fixture
def scorer(lexicon):
    """Scorer over a small fixed valence table plus lexicon overrides."""
    return LexiconSentimentScorer(lexicon, base_valences=BASE_VALENCES)


class TestScoring:
    """Score is the summed valence of matched tokens."""

    def test_positive_message(self, scorer):
        result = scorer.score("I am happy and good")

        assert result.score == pytest.approx(4.6)
        assert result.classification == SentimentLabel.POSITIVE
        assert result.positive_words == ("happy", "good")

    def test_negative_message(self, scorer):
        result = scorer.score("Sad and terrible day")

        assert result.score == pytest.approx(-4.6)
        assert result.classification == SentimentLabel.NEGATIVE
        assert result.negative_words == ("sad", "terrible")

    def test_unknown_words_are_neutral(self, scorer):
        result = scorer.score("The train leaves at noon")

        assert result.score == 0
        assert result.classification == SentimentLabel.NEUTRAL

    def test_comparative_is_score_per_token(self, scorer):
        result = scorer.score("happy happy day today")

        assert result.comparative == pytest.approx(5.4 / 4, abs=1e-4)

    def test_empty_text(self, scorer):
        result = scorer.score("")

        assert result.score == 0
        assert result.comparative == 0

    def test_overrides_win_over_base_valences(self, lexicon):
        scorer = LexiconSentimentScorer(lexicon, base_valences={"useless": -0.1})

        assert scorer.score("useless").score == pytest.approx(-2.0)


class TestNegation:
    """A valence word right after a negation is flipped."""

    def test_not_happy_is_negative(self, scorer):
        result = scorer.score("I am not happy")

        assert result.score == pytest.approx(-2.7)
        assert result.classification == SentimentLabel.NEGATIVE

    def test_curly_apostrophe_negation(self, scorer):
        result = scorer.score("I don’t feel good")

        # "feel" sits between the negation and "good"
        assert result.score == pytest.approx(1.9)

    def test_negation_words_are_not_scored(self, lexicon):
        scorer = LexiconSentimentScorer(lexicon, base_valences={"no": -1.2})

        assert scorer.score("no").score == 0


class TestClassification:
    """Thresholds: above +1 positive, below -1 negative."""

    @pytest.mark.parametrize("score,label", [
        (1.5, SentimentLabel.POSITIVE),
        (1.0, SentimentLabel.NEUTRAL),
        (0.0, SentimentLabel.NEUTRAL),
        (-1.0, SentimentLabel.NEUTRAL),
        (-1.5, SentimentLabel.NEGATIVE),
    ])
    def test_thresholds(self, scorer, score, label):
        assert scorer.classify(score) == label


class TestTokenize:

    def test_lowercases_and_keeps_contractions(self):
        assert tokenize("I'm NOT okay!") == ["i'm", "not", "okay"]


class TestVaderLexicon:
    """The bundled VADER lexicon backs the default scorer."""

    def test_default_scorer_reads_vader(self):
        scorer = LexiconSentimentScorer(load_lexicon())

        assert scorer.score("I am so happy and grateful").classification == SentimentLabel.POSITIVE
        assert scorer.score("I feel sad and hopeless").classification == SentimentLabel.NEGATIVE


def test_missing_negations_section_is_rejected():
    data = dict(read_yaml(DEFAULT_LEXICON_PATH))
    data["sentiment"] = {}

    with pytest.raises(ValueError):
        LexiconSentimentScorer(Lexicon(data))
