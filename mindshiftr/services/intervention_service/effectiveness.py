"""Effectiveness tracking and user profiles.

EffectivenessTracker is the only code that mutates effectiveness data.
Per-user records and history are updated under that user's lock; the
global aggregate has its own lock. Feedback from different users never
waits on the same user lock, and a user's profile is never updated by two
threads at once.
"""
import logging
import statistics
import threading
import weakref
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Set

from mindshiftr.shared.models import (
    ClinicalHistory,
    CommunicationStyle,
    CrisisAssessment,
    CrisisEvent,
    EffectivenessRecord,
    InterventionUse,
    ProgressMarker,
    SessionOutcome,
    UserPreferences,
    UserProfile,
)
from mindshiftr.shared.stores import BaseStore
from mindshiftr.shared.utils import hash_user_id
from .catalog import InterventionCatalog

logger = logging.getLogger(__name__)


RISK_WINDOW_DAYS = 7
TREND_WINDOW = 3
STABILITY_WINDOW = 5


class FeedbackError(ValueError):
    """Feedback payload is invalid (unknown key, rating out of range)."""
    pass


class EffectivenessTracker:
    """Per-user and global effectiveness records plus profile history."""

    def __init__(
        self,
        profile_store: BaseStore[UserProfile],
        catalog: Optional[InterventionCatalog] = None,
        clock: Optional[Callable[[], datetime]] = None,
        min_rating: float = 0.0,
        max_rating: float = 5.0,
    ):
        """Initialize tracker.

        Args:
            profile_store: Store holding UserProfiles
            catalog: When given, feedback keys must exist in it
            clock: Time source, injectable for tests
            min_rating: Lowest accepted rating
            max_rating: Highest accepted rating
        """
        self.profiles = profile_store
        self.catalog = catalog
        self.min_rating = min_rating
        self.max_rating = max_rating
        self._clock = clock or datetime.utcnow

        # Entries drop once no writer holds the lock
        self._user_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._user_locks_guard = threading.Lock()
        self._global_lock = threading.Lock()
        self._global: Dict[str, EffectivenessRecord] = {}
        self._global_users: Dict[str, Set[str]] = {}

    def user_lock(self, user_id: str) -> threading.Lock:
        with self._user_locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock

    def get_profile(self, user_id: str) -> UserProfile:
        """Profile for user_id, created with defaults on first use."""
        return self.profiles.get_or_create(user_id, lambda: UserProfile(user_id=user_id))

    def apply_profile_settings(self, user_id: str, settings: Mapping[str, Any]) -> UserProfile:
        """Update preferences and clinical history from a settings mapping.

        Recognized keys: communication_style, language, cultural_context,
        preferred_techniques, trauma_history, stabilized, psychosis_symptoms,
        conditions. Unknown keys are ignored. A recognized key with an
        unusable value (unknown style, non-list conditions, ...) keeps the
        stored value and is logged; settings never fail a turn.

        Logs:
            - PROFILE_SETTINGS_IGNORED (warning): names of rejected keys
        """
        rejected: List[str] = []

        def pick(key: str, parse: Callable[[Any], Any], current: Any) -> Any:
            if key not in settings:
                return current
            value = parse(settings[key])
            if value is None:
                rejected.append(key)
                return current
            return value

        with self.user_lock(user_id):
            profile = self.get_profile(user_id)
            prefs = profile.preferences
            clinical = profile.clinical

            profile.preferences = UserPreferences(
                communication_style=pick("communication_style", _parse_style, prefs.communication_style),
                language=pick("language", _parse_text, prefs.language),
                cultural_context=pick("cultural_context", _parse_text, prefs.cultural_context),
                preferred_techniques=pick(
                    "preferred_techniques", _parse_names, prefs.preferred_techniques
                ),
            )
            profile.clinical = ClinicalHistory(
                trauma_history=pick("trauma_history", _parse_flag, clinical.trauma_history),
                stabilized=pick("stabilized", _parse_flag, clinical.stabilized),
                psychosis_symptoms=pick("psychosis_symptoms", _parse_flag, clinical.psychosis_symptoms),
                conditions=pick("conditions", _parse_names, clinical.conditions),
            )
            profile.updated_at = self._clock()
            self.profiles.put(user_id, profile)

        if rejected:
            logger.warning(
                "PROFILE_SETTINGS_IGNORED",
                extra={"user_id_hash": hash_user_id(user_id), "keys": rejected}
            )
        return profile


    def record_outcome(
        self,
        user_id: str,
        intervention_key: str,
        success: bool,
        rating: float,
    ) -> EffectivenessRecord:
        """Ingest one piece of feedback.

        Args:
            user_id: Who gave the feedback
            intervention_key: Intervention id from a previous response
            success: Whether the intervention helped
            rating: Rating on the min_rating..max_rating scale

        Returns:
            The user's updated record for this intervention

        Raises:
            FeedbackError: Missing user, unknown key, or rating out of range

        Logs:
            - INTERVENTION_OUTCOME_RECORDED: key, success, rating, uses
        """
        rating = self._validate(user_id, intervention_key, rating)
        now = self._clock()

        with self.user_lock(user_id):
            profile = self.get_profile(user_id)
            current = profile.effectiveness.get(intervention_key, EffectivenessRecord(key=intervention_key))
            updated = current.with_outcome(success, rating)
            profile.effectiveness[intervention_key] = updated
            profile.intervention_history.append(InterventionUse(
                intervention_key=intervention_key,
                success=success,
                rating=rating,
                recorded_at=now,
            ))
            profile.updated_at = now
            self.profiles.put(user_id, profile)

        with self._global_lock:
            record = self._global.get(intervention_key, EffectivenessRecord(key=intervention_key))
            self._global[intervention_key] = record.with_outcome(success, rating)
            self._global_users.setdefault(intervention_key, set()).add(user_id)

        logger.info(
            "INTERVENTION_OUTCOME_RECORDED",
            extra={
                "user_id_hash": hash_user_id(user_id),
                "intervention_key": intervention_key,
                "success": success,
                "rating": rating,
                "user_uses": updated.uses,
            }
        )
        return updated

    def global_record(self, intervention_key: str) -> EffectivenessRecord:
        with self._global_lock:
            return self._global.get(intervention_key, EffectivenessRecord(key=intervention_key))

    def user_record(self, user_id: str, intervention_key: str) -> Optional[EffectivenessRecord]:
        profile = self.profiles.get(user_id)
        if profile is None:
            return None
        return profile.effectiveness.get(intervention_key)

    def record_crisis_event(self, user_id: str, session_id: str, assessment: CrisisAssessment) -> None:
        """Append a crisis to the user's capped crisis history."""
        with self.user_lock(user_id):
            profile = self.get_profile(user_id)
            profile.add_crisis_event(CrisisEvent(
                session_id=session_id,
                severity=assessment.severity,
                crisis_type=assessment.crisis_type,
                occurred_at=self._clock(),
            ))
            self.profiles.put(user_id, profile)

    def record_session_outcome(
        self,
        user_id: str,
        session_id: str,
        rating: float,
        engagement: float,
    ) -> ProgressMarker:
        """Store an end-of-session report and compute a progress marker.

        Raises:
            ValueError: Rating or engagement out of range
        """
        now = self._clock()
        outcome = SessionOutcome(
            session_id=session_id,
            rating=float(rating),
            engagement=float(engagement),
            recorded_at=now,
        )

        with self.user_lock(user_id):
            profile = self.get_profile(user_id)
            profile.session_outcomes.append(outcome)
            marker = ProgressMarker(
                engagement=outcome.engagement,
                improvement=_improvement_trend(profile.session_outcomes),
                stability=_stability(profile.session_outcomes),
                current_risk=self._current_risk(profile, now),
                recorded_at=now,
            )
            profile.add_progress_marker(marker)
            self.profiles.put(user_id, profile)

        logger.info(
            "SESSION_OUTCOME_RECORDED",
            extra={
                "user_id_hash": hash_user_id(user_id),
                "improvement": marker.improvement,
                "stability": marker.stability,
                "current_risk": marker.current_risk,
            }
        )
        return marker

    def analytics_report(self) -> Dict[str, Any]:
        """Aggregate view for dashboards. Contains no user identifiers."""
        with self._global_lock:
            records = list(self._global.values())
            user_counts = {key: len(users) for key, users in self._global_users.items()}

        total_uses = sum(r.uses for r in records)
        total_rating = sum(r.total_rating for r in records)
        top = sorted(records, key=lambda r: (-r.average_rating, -r.uses, r.key))[:5]

        crisis_types: Counter = Counter()
        crisis_total = 0
        profile_count = 0
        for user_id in list(self.profiles.keys()):
            profile = self.profiles.get(user_id)
            if profile is None:
                continue
            profile_count += 1
            crisis_total += len(profile.crisis_events)
            crisis_types.update(event.crisis_type.value for event in profile.crisis_events)

        return {
            "profiles": profile_count,
            "totalOutcomes": total_uses,
            "globalAverageRating": round(total_rating / total_uses, 3) if total_uses else 0.0,
            "topInterventions": [
                dict(r.to_dict(), users=user_counts.get(r.key, 0)) for r in top
            ],
            "crisisEvents": {"total": crisis_total, "byType": dict(crisis_types)},
        }

    def _validate(self, user_id: str, intervention_key: str, rating: Any) -> float:
        if not user_id:
            raise FeedbackError("user_id is required")
        if not intervention_key:
            raise FeedbackError("intervention_key is required")
        if self.catalog is not None and self.catalog.get(intervention_key) is None:
            raise FeedbackError(f"Unknown intervention key: {intervention_key}")
        if isinstance(rating, bool) or not isinstance(rating, (int, float)):
            raise FeedbackError("rating must be a number")
        if not self.min_rating <= rating <= self.max_rating:
            raise FeedbackError(
                f"rating must be between {self.min_rating} and {self.max_rating}, got {rating}"
            )
        return float(rating)

    def _current_risk(self, profile: UserProfile, now: datetime) -> str:
        cutoff = now - timedelta(days=RISK_WINDOW_DAYS)
        recent = sum(1 for event in profile.crisis_events if event.occurred_at >= cutoff)
        if recent > 2:
            return "high"
        if recent > 0:
            return "moderate"
        return "low"


def _improvement_trend(outcomes: List[SessionOutcome]) -> str:
    recent = outcomes[-TREND_WINDOW:]
    previous = outcomes[-2 * TREND_WINDOW:-TREND_WINDOW]
    if not previous:
        return "stable"
    delta = statistics.mean(o.rating for o in recent) - statistics.mean(o.rating for o in previous)
    if delta > 0.5:
        return "improving"
    if delta < -0.5:
        return "declining"
    return "stable"


def _stability(outcomes: List[SessionOutcome]) -> str:
    ratings = [o.rating for o in outcomes[-STABILITY_WINDOW:]]
    variance = statistics.pvariance(ratings) if len(ratings) > 1 else 0.0
    if variance < 0.5:
        return "high"
    if variance < 1.5:
        return "moderate"
    return "low"


def _parse_style(value: Any) -> Optional[CommunicationStyle]:
    try:
        return CommunicationStyle(value)
    except (TypeError, ValueError):
        return None


def _parse_text(value: Any) -> Optional[str]:
    return value.strip() if isinstance(value, str) and value.strip() else None


def _parse_flag(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _parse_names(value: Any) -> Optional[List[str]]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        return None
    if not all(isinstance(item, str) for item in value):
        return None
    return list(value)
