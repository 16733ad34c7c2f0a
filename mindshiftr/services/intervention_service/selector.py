"""Intervention Selector / Personalization Ranker.

Read path only: candidates are generated from the catalog, gated by the
ClinicalRuleValidator, scored against global and per-user effectiveness,
and ranked. The selector never fails: an empty ranking falls through to the
catalog's default intervention.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from mindshiftr.shared.models import Analysis, Intervention, SessionContext, UserProfile
from mindshiftr.shared.utils import hash_user_id
from mindshiftr.services.clinical_service import (
    ClinicalContext,
    ClinicalRuleValidator,
    ValidationResult,
)
from .catalog import InterventionCatalog
from .config import SelectionWeights
from .effectiveness import EffectivenessTracker

logger = logging.getLogger(__name__)


GENERAL_CATEGORY = "general"

# Sessions that reached this crisis level carry the acute_crisis condition
ACUTE_CRISIS_LEVEL = 7
ACUTE_CRISIS_CONDITION = "acute_crisis"


@dataclass(frozen=True)
class ScoredIntervention:
    """One ranked candidate and the parts of its score."""
    intervention: Intervention
    score: float
    components: Dict[str, float] = field(default_factory=dict)
    matched_keywords: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return dict(
            self.intervention.to_dict(),
            score=round(self.score, 4),
            matchedKeywords=list(self.matched_keywords),
        )


@dataclass(frozen=True)
class RankedRecommendation:
    """Selector output. `intervention` is never None."""
    intervention: Intervention
    score: float
    ranked: Tuple[ScoredIntervention, ...]
    excluded: Tuple[ValidationResult, ...]
    techniques: Tuple[str, ...]
    reasoning: Tuple[str, ...]
    is_default: bool = False

    @property
    def ranked_ids(self) -> List[str]:
        return [s.intervention.id for s in self.ranked]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intervention": self.intervention.to_dict(),
            "score": round(self.score, 4),
            "isDefault": self.is_default,
            "ranked": [s.to_dict() for s in self.ranked],
            "excluded": [v.to_dict() for v in self.excluded],
            "techniques": list(self.techniques),
            "reasoning": list(self.reasoning),
        }


class InterventionSelector:
    """Ranks catalog interventions for one analyzed message."""

    def __init__(
        self,
        catalog: InterventionCatalog,
        tracker: EffectivenessTracker,
        validator: Optional[ClinicalRuleValidator] = None,
        weights: Optional[SelectionWeights] = None,
    ):
        self.catalog = catalog
        self.tracker = tracker
        self.validator = validator or ClinicalRuleValidator()
        self.weights = weights or SelectionWeights()

    def candidates(self, analysis: Analysis) -> List[Tuple[Intervention, List[str]]]:
        """Catalog entries matching text, severity and category, in catalog order."""
        categories = set(analysis.categories) | {GENERAL_CATEGORY}
        found = []
        for intervention in self.catalog:
            if not intervention.covers_severity(analysis.severity):
                continue
            if intervention.category not in categories:
                continue
            keywords = self.catalog.matched_keywords(intervention, analysis.text)
            if keywords:
                found.append((intervention, keywords))
        return found

    def clinical_context(
        self,
        analysis: Analysis,
        profile: Optional[UserProfile] = None,
        session: Optional[SessionContext] = None,
    ) -> ClinicalContext:
        """Clinical facts for this turn, including the session's crisis history."""
        context = ClinicalContext.for_turn(analysis.severity, profile, tuple(analysis.categories))
        if session is not None and session.crisis_level >= ACUTE_CRISIS_LEVEL:
            if ACUTE_CRISIS_CONDITION not in context.conditions:
                context = ClinicalContext(
                    severity=context.severity,
                    crisis_type=context.crisis_type,
                    presenting_issues=context.presenting_issues,
                    trauma_history=context.trauma_history,
                    stabilized=context.stabilized,
                    psychosis_symptoms=context.psychosis_symptoms,
                    conditions=context.conditions + (ACUTE_CRISIS_CONDITION,),
                )
        return context

    def select(
        self,
        analysis: Analysis,
        profile: Optional[UserProfile] = None,
        session: Optional[SessionContext] = None,
        clinical_context: Optional[ClinicalContext] = None,
    ) -> RankedRecommendation:
        """Rank validated candidates; fall back to the default intervention.

        Args:
            analysis: Analysis of the current message
            profile: User profile (effectiveness, preferences, clinical history)
            session: Current session, used for its crisis history
            clinical_context: Overrides the context derived from the above

        Returns:
            RankedRecommendation; failed candidates appear only in `excluded`

        Logs:
            - INTERVENTION_EXCLUDED (WARNING): per failed validation
            - INTERVENTION_SELECTED: winner, score, candidate counts
        """
        context = clinical_context or self.clinical_context(analysis, profile, session)

        scored: List[ScoredIntervention] = []
        excluded: List[ValidationResult] = []
        for intervention, keywords in self.candidates(analysis):
            validation = self.validator.validate(intervention, context)
            if not validation.is_valid:
                excluded.append(validation)
                logger.warning(
                    "INTERVENTION_EXCLUDED",
                    extra={
                        "intervention_id": intervention.id,
                        "safety_score": validation.safety_score,
                        "warnings": list(validation.warnings),
                    }
                )
                continue
            components = self._score_components(intervention, analysis, profile)
            scored.append(ScoredIntervention(
                intervention=intervention,
                score=sum(components.values()),
                components=components,
                matched_keywords=tuple(keywords),
            ))

        # sorted() is stable and candidates are already in catalog order
        ranked = tuple(sorted(scored, key=lambda s: -s.score))

        if ranked:
            winner = ranked[0]
            intervention, score, is_default = winner.intervention, winner.score, False
        else:
            intervention, score, is_default = self.catalog.default, 0.0, True

        techniques = [intervention.technique]
        techniques.extend(self.catalog.applicability.techniques_for(analysis))

        recommendation = RankedRecommendation(
            intervention=intervention,
            score=score,
            ranked=ranked,
            excluded=tuple(excluded),
            techniques=tuple(dict.fromkeys(techniques)),
            reasoning=tuple(self._reasoning(analysis, ranked, excluded, is_default)),
            is_default=is_default,
        )

        logger.info(
            "INTERVENTION_SELECTED",
            extra={
                "user_id_hash": hash_user_id(profile.user_id) if profile else None,
                "intervention_id": intervention.id,
                "score": round(score, 4),
                "ranked_count": len(ranked),
                "excluded_count": len(excluded),
                "is_default": is_default,
            }
        )
        return recommendation

    def _score_components(
        self,
        intervention: Intervention,
        analysis: Analysis,
        profile: Optional[UserProfile],
    ) -> Dict[str, float]:
        w = self.weights
        global_avg = self.tracker.global_record(intervention.id).average_rating

        user_avg = 0.0
        preferred = False
        recency = 0.0
        if profile is not None:
            record = profile.effectiveness.get(intervention.id)
            user_avg = record.average_rating if record else 0.0
            preferences = set(profile.preferences.preferred_techniques)
            preferred = intervention.technique in preferences or intervention.category in preferences
            uses = profile.recent_uses(intervention.id, w.recency_window)
            if uses:
                recency = sum(1 for u in uses if u.success) / len(uses)

        return {
            "global_rating": w.global_rating * global_avg,
            "user_rating": w.user_rating * user_avg,
            "severity_match": w.severity_match * (1.0 if analysis.severity == intervention.target_severity else 0.0),
            "preference": w.preference * (1.0 if preferred else 0.0),
            "recency": w.recency * recency,
        }

    def _reasoning(
        self,
        analysis: Analysis,
        ranked: Tuple[ScoredIntervention, ...],
        excluded: List[ValidationResult],
        is_default: bool,
    ) -> List[str]:
        lines = [
            f"Severity {analysis.severity}, primary emotion {analysis.primary_emotion.emotion}, "
            f"context {analysis.primary_category}"
        ]
        if is_default:
            lines.append("No validated intervention matched; using general supportive listening")
        else:
            winner = ranked[0]
            lines.append(
                f"Selected {winner.intervention.name} (score {winner.score:.2f}) "
                f"matching {', '.join(winner.matched_keywords)}"
            )
            if winner.components.get("user_rating"):
                lines.append("Ranked up by your previous ratings")
        for validation in excluded:
            lines.append(f"Skipped {validation.intervention_id}: {'; '.join(validation.warnings)}")
        return lines
