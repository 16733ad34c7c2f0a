"""Analyzer thresholds.

Severity is a 0-10 integer that only moves toward crisis as evidence
accumulates. The analyzer never lowers it below the baseline.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class AnalyzerConfig:
    """Severity scoring rules for the Message Analyzer."""

    baseline_severity: int = 5

    # Each threshold the sentiment score falls below adds severity_step
    moderate_negative_sentiment: float = -3.0
    strong_negative_sentiment: float = -6.0
    sentiment_step: int = 2

    # Added once when any intensifier word is present
    intensifier_step: int = 2

    # Severity when a direct crisis or lethal-method keyword is present
    crisis_keyword_severity: int = 10

    # Intensity of the fallback emotion when nothing matched
    neutral_intensity: float = 0.5
