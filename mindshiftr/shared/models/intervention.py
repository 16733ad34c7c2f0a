"""Intervention catalog entries and effectiveness records."""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Tuple


class EvidenceTier(Enum):
    """Strength of the research base behind a technique."""
    A_PLUS = "A+"
    A = "A"
    B = "B"
    C = "C"
    UNGRADED = "ungraded"

    @property
    def rank(self) -> int:
        """Higher is stronger evidence."""
        return {"A+": 4, "A": 3, "B": 2, "C": 1, "ungraded": 0}[self.value]


@dataclass(frozen=True)
class Intervention:
    """A therapeutic technique the engine may recommend.

    severity_range is inclusive on both ends. target_severity is the level
    the technique is designed for and earns a ranking bonus on exact match.
    """
    id: str
    name: str
    category: str
    technique: str
    keywords: Tuple[str, ...]
    severity_range: Tuple[int, int]
    target_severity: int
    evidence_tier: EvidenceTier
    response: str
    instructions: Tuple[str, ...] = ()
    follow_up: str = ""
    tags: FrozenSet[str] = frozenset()
    components: FrozenSet[str] = frozenset()
    contraindications: FrozenSet[str] = frozenset()

    def __post_init__(self):
        low, high = self.severity_range
        if not 0 <= low <= high <= 10:
            raise ValueError(f"Invalid severity range {self.severity_range} for {self.id}")
        if not low <= self.target_severity <= high:
            raise ValueError(
                f"Target severity {self.target_severity} outside range for {self.id}"
            )

    def covers_severity(self, severity: int) -> bool:
        low, high = self.severity_range
        return low <= severity <= high

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.id,
            "name": self.name,
            "category": self.category,
            "technique": self.technique,
            "evidenceTier": self.evidence_tier.value,
            "instructions": list(self.instructions),
        }


@dataclass(frozen=True)
class EffectivenessRecord:
    """Aggregated outcomes for one intervention, per user or globally.

    Records are replaced, never mutated: with_outcome returns the next value.
    """
    key: str
    uses: int = 0
    successes: int = 0
    total_rating: float = 0.0

    @property
    def average_rating(self) -> float:
        return self.total_rating / self.uses if self.uses else 0.0

    @property
    def success_rate(self) -> float:
        return self.successes / self.uses if self.uses else 0.0

    def with_outcome(self, success: bool, rating: float) -> "EffectivenessRecord":
        return replace(
            self,
            uses=self.uses + 1,
            successes=self.successes + (1 if success else 0),
            total_rating=self.total_rating + rating,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "uses": self.uses,
            "successes": self.successes,
            "totalRating": round(self.total_rating, 3),
            "averageRating": round(self.average_rating, 3),
        }
