"""Tests for TextNormalizer evasion handling."""
import pytest

from mindshiftr.services.safety_service.text_normalizer import TextNormalizer


@pytest.fixture
def normalizer():
    return TextNormalizer()


class TestLeetspeak:

    def test_digits_inside_words(self, normalizer):
        assert normalizer.normalize("K1LL MYS3LF") == "kill myself"

    def test_standalone_numbers_untouched(self, normalizer):
        assert normalizer.normalize("call 988 now") == "call 988 now"


class TestUnicode:

    def test_fullwidth_letters(self, normalizer):
        assert normalizer.normalize("ｋｉｌｌ ｍｙｓｅｌｆ") == "kill myself"

    def test_circled_letters(self, normalizer):
        assert normalizer.normalize("ⓚⓘⓛⓛ") == "kill"

    def test_accents_are_stripped(self, normalizer):
        assert normalizer.normalize("suïcide") == "suicide"

    def test_zero_width_characters_removed(self, normalizer):
        assert normalizer.normalize("su\u200bicide") == "suicide"


class TestSeparators:

    @pytest.mark.parametrize("text", ["k.i.l.l", "k-i-l-l", "k i l l", "k_i_l_l"])
    def test_split_letters_joined(self, normalizer, text):
        assert normalizer.normalize(text) == "kill"

    def test_normal_sentences_unchanged(self, normalizer):
        assert normalizer.normalize("I had a good day") == "i had a good day"


def test_empty_text(normalizer):
    assert normalizer.normalize("") == ""
