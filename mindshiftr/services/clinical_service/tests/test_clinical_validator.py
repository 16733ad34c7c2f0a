"""Tests for ClinicalRuleValidator."""
import pytest

from mindshiftr.shared.models import ClinicalHistory, EvidenceTier, Intervention, UserProfile
from mindshiftr.services.clinical_service.config import ValidatorConfig
from mindshiftr.services.clinical_service.validator import ClinicalContext, ClinicalRuleValidator


def make_intervention(**overrides):
    fields = dict(
        id="test_intervention",
        name="Test",
        category="general",
        technique="testing",
        keywords=("test",),
        severity_range=(0, 10),
        target_severity=5,
        evidence_tier=EvidenceTier.A,
        response="Try this.",
    )
    fields.update(overrides)
    return Intervention(**fields)


@pytest.fixture
def validator():
    return ClinicalRuleValidator()


class TestBaseline:

    def test_plain_intervention_is_valid(self, validator):
        result = validator.validate(make_intervention(), ClinicalContext(severity=5))

        assert result.is_valid is True
        assert result.safety_score == 5
        assert result.clinical_appropriateness == 5
        assert result.warnings == ()
        assert result.evidence_level == "A"


class TestCrisisAdjacentSeverity:
    """At severity >= 8 safety planning and referral are required."""

    def test_missing_components_invalidate(self, validator):
        result = validator.validate(make_intervention(), ClinicalContext(severity=8))

        assert result.is_valid is False
        assert result.safety_score == 1
        assert len(result.warnings) == 2

    def test_one_missing_component(self, validator):
        intervention = make_intervention(components=frozenset({"safety_planning"}))

        result = validator.validate(intervention, ClinicalContext(severity=9))

        assert result.safety_score == 3
        assert result.is_valid is False

    def test_complete_safety_plan_is_valid(self, validator):
        intervention = make_intervention(
            components=frozenset({"safety_planning", "professional_referral"})
        )

        result = validator.validate(intervention, ClinicalContext(severity=9))

        assert result.is_valid is True
        assert result.safety_score == 5

    def test_exposure_is_hard_blocked(self, validator):
        intervention = make_intervention(
            tags=frozenset({"exposure"}),
            components=frozenset({"safety_planning", "professional_referral"}),
        )

        result = validator.validate(intervention, ClinicalContext(severity=8))

        assert result.is_valid is False
        assert result.safety_score == 1

    def test_exposure_allowed_below_threshold(self, validator):
        intervention = make_intervention(tags=frozenset({"exposure"}))

        assert validator.validate(intervention, ClinicalContext(severity=5)).is_valid is True

    def test_threshold_is_configurable(self):
        validator = ClinicalRuleValidator(ValidatorConfig(crisis_adjacent_severity=6))

        assert validator.validate(make_intervention(), ClinicalContext(severity=6)).is_valid is False


class TestTrauma:

    def test_processing_before_stabilization_is_contraindicated(self, validator):
        intervention = make_intervention(tags=frozenset({"trauma_processing"}))
        context = ClinicalContext(severity=5, trauma_history=True, stabilized=False)

        result = validator.validate(intervention, context)

        assert result.is_valid is False
        assert any("stabilization" in w for w in result.warnings)

    def test_processing_after_stabilization_is_valid(self, validator):
        intervention = make_intervention(tags=frozenset({"trauma_processing"}))
        context = ClinicalContext(severity=5, trauma_history=True, stabilized=True)

        assert validator.validate(intervention, context).is_valid is True


class TestEvidence:

    def test_low_tier_lowers_appropriateness_only(self, validator):
        result = validator.validate(
            make_intervention(evidence_tier=EvidenceTier.C), ClinicalContext(severity=5)
        )

        assert result.clinical_appropriateness == 4
        assert result.is_valid is True
        assert result.recommendations

    def test_quality_bar_tier_is_not_penalized(self, validator):
        result = validator.validate(
            make_intervention(evidence_tier=EvidenceTier.B), ClinicalContext(severity=5)
        )

        assert result.clinical_appropriateness == 5


class TestContraindications:

    def test_condition_match(self, validator):
        intervention = make_intervention(contraindications=frozenset({"acute_crisis"}))
        context = ClinicalContext(severity=5, conditions=("acute_crisis",))

        result = validator.validate(intervention, context)

        assert result.is_valid is False

    def test_psychosis_and_reality_testing(self, validator):
        intervention = make_intervention(tags=frozenset({"requires_reality_testing"}))
        context = ClinicalContext(severity=5, psychosis_symptoms=True)

        assert validator.validate(intervention, context).is_valid is False


class TestContextFromProfile:

    def test_for_turn_reads_clinical_history(self):
        profile = UserProfile(
            user_id="u1",
            clinical=ClinicalHistory(trauma_history=True, conditions=["acute_crisis"]),
        )

        context = ClinicalContext.for_turn(6, profile, ("trauma",))

        assert context.severity == 6
        assert context.trauma_history is True
        assert context.stabilized is False
        assert context.conditions == ("acute_crisis",)
        assert context.presenting_issues == ("trauma",)

    def test_for_turn_without_profile(self):
        assert ClinicalContext.for_turn(4).trauma_history is False
