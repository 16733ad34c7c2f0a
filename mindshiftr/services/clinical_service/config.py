"""Clinical validation rules configuration."""
from dataclasses import dataclass, field
from typing import FrozenSet

from mindshiftr.shared.models import EvidenceTier


@dataclass(frozen=True)
class ValidatorConfig:
    """Thresholds for ClinicalRuleValidator."""

    # Severity at or above which safety planning and referral are mandatory
    crisis_adjacent_severity: int = 8

    max_score: int = 5
    min_safety_score: int = 3
    missing_component_penalty: int = 2
    # Safety score forced on hard-blocked techniques
    blocked_safety_score: int = 1

    evidence_quality_bar: EvidenceTier = EvidenceTier.B

    crisis_required_components: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"safety_planning", "professional_referral"})
    )
    exposure_tag: str = "exposure"
    trauma_processing_tag: str = "trauma_processing"
    reality_testing_tag: str = "requires_reality_testing"
