"""Intervention Service: catalog, personalized ranking and feedback ingestion."""

from .catalog import InterventionCatalog, TechniqueApplicability, parse_intervention
from .config import SelectionWeights
from .effectiveness import EffectivenessTracker, FeedbackError
from .selector import InterventionSelector, RankedRecommendation, ScoredIntervention

__all__ = [
    "EffectivenessTracker",
    "FeedbackError",
    "InterventionCatalog",
    "InterventionSelector",
    "RankedRecommendation",
    "ScoredIntervention",
    "SelectionWeights",
    "TechniqueApplicability",
    "parse_intervention",
]
