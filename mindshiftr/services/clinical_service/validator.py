"""Clinical Rule Validator.

Gates every candidate intervention before it can be ranked. Rules:

1. Crisis-adjacent severity: the intervention must include safety planning
   and professional referral (each missing one costs safety points), and
   exposure-style techniques are hard-blocked.
2. Trauma history without stabilization: trauma-processing techniques are
   contraindicated.
3. Evidence below the quality bar lowers clinical appropriateness.
4. Catalog contraindications present in the user's conditions, and
   reality-testing techniques during psychotic symptoms, are flagged.

An intervention is valid only with zero warnings and a safety score at or
above the minimum.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from mindshiftr.shared.models import CrisisType, Intervention, UserProfile
from .config import ValidatorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClinicalContext:
    """Clinical facts about the current turn and user."""
    severity: int
    crisis_type: CrisisType = CrisisType.NONE
    presenting_issues: Tuple[str, ...] = ()
    trauma_history: bool = False
    stabilized: bool = False
    psychosis_symptoms: bool = False
    conditions: Tuple[str, ...] = ()

    @classmethod
    def for_turn(
        cls,
        severity: int,
        profile: Optional[UserProfile] = None,
        presenting_issues: Tuple[str, ...] = (),
    ) -> "ClinicalContext":
        """Combine a turn's severity with the user's clinical history."""
        if profile is None:
            return cls(severity=severity, presenting_issues=presenting_issues)
        clinical = profile.clinical
        return cls(
            severity=severity,
            presenting_issues=presenting_issues,
            trauma_history=clinical.trauma_history,
            stabilized=clinical.stabilized,
            psychosis_symptoms=clinical.psychosis_symptoms,
            conditions=tuple(clinical.conditions),
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one intervention."""
    intervention_id: str
    is_valid: bool
    safety_score: int
    clinical_appropriateness: int
    evidence_level: str
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interventionId": self.intervention_id,
            "isValid": self.is_valid,
            "safetyScore": self.safety_score,
            "clinicalAppropriateness": self.clinical_appropriateness,
            "evidenceLevel": self.evidence_level,
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
        }


@dataclass
class _Scorecard:
    safety: int
    appropriateness: int
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


class ClinicalRuleValidator:
    """Stateless rule checks over (intervention, clinical context)."""

    def __init__(self, config: Optional[ValidatorConfig] = None):
        self.config = config or ValidatorConfig()

    def validate(self, intervention: Intervention, context: ClinicalContext) -> ValidationResult:
        """Validate an intervention for this context.

        Args:
            intervention: Catalog entry
            context: Clinical facts for the turn

        Returns:
            ValidationResult; is_valid only with no warnings and adequate safety
        """
        card = _Scorecard(safety=self.config.max_score, appropriateness=self.config.max_score)

        self._check_crisis_adjacent(intervention, context, card)
        self._check_trauma(intervention, context, card)
        self._check_evidence(intervention, card)
        self._check_contraindications(intervention, context, card)

        safety = max(0, min(card.safety, self.config.max_score))
        appropriateness = max(0, min(card.appropriateness, self.config.max_score))
        return ValidationResult(
            intervention_id=intervention.id,
            is_valid=not card.warnings and safety >= self.config.min_safety_score,
            safety_score=safety,
            clinical_appropriateness=appropriateness,
            evidence_level=intervention.evidence_tier.value,
            warnings=tuple(card.warnings),
            recommendations=tuple(card.recommendations),
        )

    def _check_crisis_adjacent(
        self, intervention: Intervention, context: ClinicalContext, card: _Scorecard
    ) -> None:
        if context.severity < self.config.crisis_adjacent_severity:
            return

        for component in sorted(self.config.crisis_required_components):
            if component not in intervention.components:
                card.safety -= self.config.missing_component_penalty
                card.warnings.append(f"Missing {component.replace('_', ' ')} at crisis-adjacent severity")
                card.recommendations.append(f"Add {component.replace('_', ' ')}")

        if self.config.exposure_tag in intervention.tags:
            card.safety = self.config.blocked_safety_score
            card.warnings.append("Exposure techniques are contraindicated at crisis-adjacent severity")

    def _check_trauma(
        self, intervention: Intervention, context: ClinicalContext, card: _Scorecard
    ) -> None:
        if (
            context.trauma_history
            and not context.stabilized
            and self.config.trauma_processing_tag in intervention.tags
        ):
            card.warnings.append("Trauma processing is contraindicated before stabilization")
            card.recommendations.append("Start with stabilization and grounding skills")

    def _check_evidence(self, intervention: Intervention, card: _Scorecard) -> None:
        if intervention.evidence_tier.rank < self.config.evidence_quality_bar.rank:
            card.appropriateness -= 1
            card.recommendations.append(
                f"Limited evidence base ({intervention.evidence_tier.value}); pair with an established technique"
            )

    def _check_contraindications(
        self, intervention: Intervention, context: ClinicalContext, card: _Scorecard
    ) -> None:
        for condition in sorted(intervention.contraindications.intersection(context.conditions)):
            card.warnings.append(f"Contraindicated for {condition.replace('_', ' ')}")

        if context.psychosis_symptoms and self.config.reality_testing_tag in intervention.tags:
            card.warnings.append("Reality-testing techniques need adaptation during psychotic symptoms")
            card.recommendations.append("Refer for clinician-guided adaptation")
