"""Keyword tables and the intervention catalog file."""
from .loader import (
    DEFAULT_CATALOG_PATH,
    DEFAULT_LEXICON_PATH,
    KeywordMatcher,
    Lexicon,
    LexiconError,
    compile_keyword,
    load_lexicon,
    normalize_text,
    read_yaml,
)

__all__ = [
    "DEFAULT_CATALOG_PATH",
    "DEFAULT_LEXICON_PATH",
    "KeywordMatcher",
    "Lexicon",
    "LexiconError",
    "compile_keyword",
    "load_lexicon",
    "normalize_text",
    "read_yaml",
]
