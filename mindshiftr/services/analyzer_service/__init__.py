"""Analyzer Service: rule-based reading of user messages.

Components:
- analyzer.py: MessageAnalyzer producing an immutable Analysis
- sentiment.py: LexiconSentimentScorer over the VADER valence lexicon
- config.py: Severity scoring thresholds

Usage:
    from mindshiftr.services.analyzer_service import MessageAnalyzer
    analyzer = MessageAnalyzer()
    analysis = analyzer.analyze(message, session)
"""

from .analyzer import MessageAnalyzer
from .config import AnalyzerConfig
from .sentiment import LexiconSentimentScorer, tokenize

__all__ = ["AnalyzerConfig", "LexiconSentimentScorer", "MessageAnalyzer", "tokenize"]
