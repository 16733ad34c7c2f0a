"""Lexicon tables loaded from YAML.

The keyword tables that drive analysis, crisis detection, flow tracking and
response composition live in editable YAML files next to this module. They
are loaded once, validated for the sections the engine needs, and exposed
through precompiled KeywordMatchers.
"""
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)


DATA_DIR = Path(__file__).parent / "data"
DEFAULT_LEXICON_PATH = DATA_DIR / "lexicon.yaml"
DEFAULT_CATALOG_PATH = DATA_DIR / "interventions.yaml"

REQUIRED_SECTIONS = (
    "sentiment",
    "emotions",
    "distortions",
    "intents",
    "topics",
    "intensifiers",
    "linguistic",
    "temporal",
    "risk_factors",
    "protective_factors",
    "categories",
    "crisis",
    "flow",
    "applicability",
    "responses",
    "education",
)

_QUOTE_MAP = str.maketrans({"‘": "'", "’": "'", "“": '"', "”": '"'})


class LexiconError(ValueError):
    """Lexicon or catalog file is missing, unreadable, or malformed."""
    pass


def normalize_text(text: str) -> str:
    """Lowercase, straighten quotes and collapse whitespace."""
    return " ".join(text.translate(_QUOTE_MAP).lower().split())


def compile_keyword(keyword: str) -> re.Pattern:
    """Word-bounded, case-insensitive pattern so "cut" never matches "cute"."""
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


class KeywordMatcher:
    """Precompiled keyword list, evaluated in table order."""

    def __init__(self, keywords: Iterable[str]):
        self.keywords = tuple(dict.fromkeys(str(k).lower() for k in keywords))
        self._patterns = [(k, compile_keyword(k)) for k in self.keywords]
        # Longest first so "i'm" is counted once rather than as "i" + "i'm"
        ordered = sorted(self.keywords, key=len, reverse=True)
        self._combined = (
            re.compile("|".join(rf"\b{re.escape(k)}\b" for k in ordered), re.IGNORECASE)
            if ordered else None
        )

    def find(self, text: str) -> List[str]:
        """Keywords present in text, in table order."""
        return [keyword for keyword, pattern in self._patterns if pattern.search(text)]

    def matches(self, text: str) -> bool:
        return self._combined is not None and self._combined.search(text) is not None

    def count(self, text: str) -> int:
        """Non-overlapping occurrences of any keyword."""
        if self._combined is None:
            return 0
        return sum(1 for _ in self._combined.finditer(text))

    def __len__(self) -> int:
        return len(self.keywords)


class Lexicon:
    """Validated view over the lexicon YAML document."""

    def __init__(self, data: Mapping[str, Any], source: str = "<memory>"):
        if not isinstance(data, Mapping):
            raise LexiconError(f"Lexicon {source} must be a mapping")
        missing = [name for name in REQUIRED_SECTIONS if name not in data]
        if missing:
            raise LexiconError(f"Lexicon {source} missing sections: {', '.join(missing)}")

        self._data = data
        self.source = source
        self.version = str(data.get("version", "unversioned"))
        self._matchers: Dict[tuple, KeywordMatcher] = {}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Lexicon":
        return cls(read_yaml(path), source=str(path))

    def section(self, *path: str) -> Any:
        """Walk nested keys, raising LexiconError when one is missing."""
        node: Any = self._data
        for key in path:
            if not isinstance(node, Mapping) or key not in node:
                raise LexiconError(f"Lexicon {self.source} missing entry {'.'.join(path)}")
            node = node[key]
        return node

    def get(self, *path: str, default: Any = None) -> Any:
        try:
            return self.section(*path)
        except LexiconError:
            return default

    def matcher(self, *path: str) -> KeywordMatcher:
        """KeywordMatcher for the keyword list at path, cached."""
        matcher = self._matchers.get(path)
        if matcher is None:
            keywords = self.section(*path)
            if not isinstance(keywords, list):
                raise LexiconError(f"Lexicon entry {'.'.join(path)} must be a list")
            matcher = KeywordMatcher(keywords)
            self._matchers[path] = matcher
        return matcher

    def matchers(self, *path: str) -> Dict[str, KeywordMatcher]:
        """One matcher per key of the mapping at path, preserving file order."""
        table = self.section(*path)
        if not isinstance(table, Mapping):
            raise LexiconError(f"Lexicon entry {'.'.join(path)} must be a mapping")
        return {str(name): self.matcher(*path, name) for name in table}


def read_yaml(path: Union[str, Path]) -> Mapping[str, Any]:
    """Load a YAML document, converting I/O and parse failures to LexiconError."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as e:
        raise LexiconError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise LexiconError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, Mapping):
        raise LexiconError(f"{path} must contain a mapping at the top level")

    logger.info(
        "LEXICON_FILE_LOADED",
        extra={"path": str(path), "version": data.get("version", "unversioned")}
    )
    return data


@lru_cache(maxsize=8)
def _load_cached(path: str) -> Lexicon:
    return Lexicon.from_file(path)


def load_lexicon(path: Optional[Union[str, Path]] = None) -> Lexicon:
    """Load (and cache) the lexicon at path, or the bundled default."""
    return _load_cached(str(path or DEFAULT_LEXICON_PATH))
