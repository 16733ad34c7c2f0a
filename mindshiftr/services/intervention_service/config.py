"""Ranking weights for the intervention selector."""
from dataclasses import dataclass


@dataclass(frozen=True)
class SelectionWeights:
    """Score = weighted sum of effectiveness and fit signals.

    Ratings are on the 0-5 feedback scale; the remaining signals are 0 or 1
    (severity match, preference) or a 0-1 success rate (recency).
    """
    global_rating: float = 0.3
    user_rating: float = 0.4
    severity_match: float = 0.2
    preference: float = 0.1
    recency: float = 0.1

    # How many of the user's most recent uses feed the recency signal
    recency_window: int = 5

    min_rating: float = 0.0
    max_rating: float = 5.0
