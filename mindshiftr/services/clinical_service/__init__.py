"""Clinical Service: rule-based validation of candidate interventions."""

from .config import ValidatorConfig
from .validator import ClinicalContext, ClinicalRuleValidator, ValidationResult

__all__ = ["ClinicalContext", "ClinicalRuleValidator", "ValidationResult", "ValidatorConfig"]
