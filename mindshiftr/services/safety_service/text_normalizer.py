"""Evasion-resistant text normalization for crisis matching.

Crisis language is sometimes disguised ("k1ll mys3lf", "k.i.l.l", styled
unicode letters). The crisis detector matches keywords against both the
plain text and the output of this normalizer.
"""
import logging
import re
import unicodedata
from typing import Dict, FrozenSet

logger = logging.getLogger(__name__)


LEETSPEAK_MAP: Dict[str, str] = {
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "8": "b",
    "@": "a",
    "$": "s",
    "!": "i",
    "+": "t",
    "|": "l",
}

INVISIBLE_CHARS: FrozenSet[str] = frozenset({
    "\u200b",  # zero-width space
    "\u200c",  # zero-width non-joiner
    "\u200d",  # zero-width joiner
    "\ufeff",  # byte order mark
    "\u00ad",  # soft hyphen
    "\u2060",  # word joiner
})

MAX_SEPARATOR_PASSES = 20


class TextNormalizer:
    """Undoes common obfuscation before keyword matching.

    Steps, in order: drop invisible characters, fold compatibility unicode
    (fullwidth, circled, mathematical letters) to ASCII, map leetspeak
    characters that sit inside words, join single letters split by
    separators, collapse whitespace, lowercase.
    """

    def __init__(self):
        leet_chars = re.escape("".join(LEETSPEAK_MAP))
        # Only substitute leetspeak touching a letter so "988" stays a number
        self._leet_pattern = re.compile(
            rf"(?<=[a-z])[{leet_chars}]|[{leet_chars}](?=[a-z])", re.IGNORECASE
        )
        self._split_letters = re.compile(
            r"(?<![a-z])([a-z])[\s.\-_*]+(?=[a-z](?![a-z]))", re.IGNORECASE
        )

    def normalize(self, text: str) -> str:
        if not text:
            return ""

        result = "".join(c for c in text if c not in INVISIBLE_CHARS)
        result = self._fold_unicode(result)
        # Two passes so runs like "k1ll" and "1ll" both resolve
        for _ in range(2):
            result = self._leet_pattern.sub(lambda m: LEETSPEAK_MAP[m.group(0)], result)
        result = self._join_split_letters(result)
        return " ".join(result.split()).lower()

    def _fold_unicode(self, text: str) -> str:
        folded = unicodedata.normalize("NFKC", text)
        decomposed = unicodedata.normalize("NFKD", folded)
        return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")

    def _join_split_letters(self, text: str) -> str:
        for _ in range(MAX_SEPARATOR_PASSES):
            joined = self._split_letters.sub(r"\1", text)
            if joined == text:
                break
            text = joined
        return text
