"""Crisis detection thresholds.

Detection is deliberately biased toward over-triggering: a false positive
costs one canned resource message, a false negative can cost a life.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class CrisisThresholds:
    """Signal thresholds and severity weights for the Crisis Detector."""

    # Emotional signal: emotion intensity strictly above these
    hopelessness_intensity: float = 0.8
    despair_intensity: float = 0.7

    # Threshold signal: analyzed severity above, or sentiment below
    analysis_severity: int = 8
    sentiment_score: float = -7.0

    # Crisis severity composition
    base_severity: int = 5
    lethal_keyword_weight: int = 3
    high_analysis_severity_weight: int = 2
    all_or_nothing_weight: int = 1
    minimum_crisis_severity: int = 7

    # Recommended action cut-offs (strictly above)
    emergency_services_above: int = 8
    hotline_above: int = 6

    pattern_version: str = "2026.10.1"
