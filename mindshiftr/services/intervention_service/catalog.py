"""Intervention catalog and technique applicability.

The catalog is loaded from interventions.yaml in file order, which is also
the tie-break order when ranking. TechniqueApplicability is the single
table deciding which techniques and tools fit an analysis; both the
selector and the response composer read it.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from mindshiftr.shared.lexicon import (
    DEFAULT_CATALOG_PATH,
    KeywordMatcher,
    Lexicon,
    LexiconError,
    load_lexicon,
    read_yaml,
)
from mindshiftr.shared.models import Analysis, EvidenceTier, Intervention

logger = logging.getLogger(__name__)


class TechniqueApplicability:
    """Emotion/topic/distortion/severity -> techniques and tools."""

    def __init__(self, table: Mapping[str, Any]):
        self._emotions: Mapping[str, Any] = table.get("emotions") or {}
        self._topics: Mapping[str, Any] = table.get("topics") or {}
        self._distortions: Mapping[str, Any] = table.get("distortions") or {}
        high = table.get("high_severity") or {}
        self._high_severity_threshold = int(high.get("threshold", 6))
        self._high_severity_techniques = list(high.get("techniques") or ())

    def _entries(self, analysis: Analysis) -> List[Mapping[str, Any]]:
        entries = [self._emotions[e.emotion] for e in analysis.emotions if e.emotion in self._emotions]
        entries.extend(self._topics[t] for t in analysis.topics if t in self._topics)
        if analysis.distortions and self._distortions:
            entries.append(self._distortions)
        return entries

    def techniques_for(self, analysis: Analysis) -> List[str]:
        """Applicable techniques, most specific first, without duplicates."""
        techniques: List[str] = []
        for entry in self._entries(analysis):
            techniques.extend(entry.get("techniques") or ())
        if analysis.severity > self._high_severity_threshold:
            techniques.extend(self._high_severity_techniques)
        return list(dict.fromkeys(techniques))

    def tools_for(self, analysis: Analysis) -> List[Dict[str, str]]:
        """Suggested app tools, one per route."""
        tools: Dict[str, Dict[str, str]] = {}
        for entry in self._entries(analysis):
            for tool in entry.get("tools") or ():
                tools.setdefault(str(tool["tool"]), {
                    "tool": str(tool["tool"]),
                    "priority": str(tool.get("priority", "medium")),
                })
        return list(tools.values())


class InterventionCatalog:
    """Ordered, read-only collection of interventions."""

    def __init__(
        self,
        interventions: Sequence[Intervention],
        default: Intervention,
        applicability: TechniqueApplicability,
        version: str = "unversioned",
    ):
        ids = [i.id for i in interventions]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise LexiconError(f"Duplicate intervention ids: {', '.join(duplicates)}")
        if default.id in ids:
            raise LexiconError(f"Default intervention id {default.id} reused in catalog")

        self._interventions = list(interventions)
        self._by_id = {i.id: i for i in self._interventions}
        self._order = {i.id: index for index, i in enumerate(self._interventions)}
        self._matchers = {i.id: KeywordMatcher(i.keywords) for i in self._interventions}
        self.default = default
        self.applicability = applicability
        self.version = version

    @classmethod
    def from_file(
        cls,
        path: Optional[Union[str, Path]] = None,
        lexicon: Optional[Lexicon] = None,
    ) -> "InterventionCatalog":
        """Load the catalog YAML; applicability comes from the lexicon."""
        path = path or DEFAULT_CATALOG_PATH
        data = read_yaml(path)
        lexicon = lexicon or load_lexicon()

        entries = data.get("interventions")
        if not isinstance(entries, list) or not entries:
            raise LexiconError(f"{path} must list at least one intervention")
        if not isinstance(data.get("default"), Mapping):
            raise LexiconError(f"{path} must define a default intervention")

        catalog = cls(
            interventions=[parse_intervention(entry) for entry in entries],
            default=parse_intervention(data["default"]),
            applicability=TechniqueApplicability(lexicon.section("applicability")),
            version=str(data.get("version", "unversioned")),
        )
        logger.info(
            "INTERVENTION_CATALOG_LOADED",
            extra={"version": catalog.version, "intervention_count": len(catalog)}
        )
        return catalog

    def __iter__(self) -> Iterator[Intervention]:
        return iter(self._interventions)

    def __len__(self) -> int:
        return len(self._interventions)

    def get(self, key: str) -> Optional[Intervention]:
        """Catalog entry or the default intervention by id."""
        if key == self.default.id:
            return self.default
        return self._by_id.get(key)

    def order_of(self, key: str) -> int:
        return self._order.get(key, len(self._order))

    def matched_keywords(self, intervention: Intervention, text: str) -> List[str]:
        matcher = self._matchers.get(intervention.id)
        return matcher.find(text) if matcher else []


def parse_intervention(entry: Mapping[str, Any]) -> Intervention:
    """Build an Intervention from one YAML mapping."""
    if not isinstance(entry, Mapping):
        raise LexiconError(f"Intervention entry must be a mapping, got {entry!r}")
    try:
        low, high = entry["severity_range"]
        return Intervention(
            id=str(entry["id"]),
            name=str(entry["name"]),
            category=str(entry["category"]),
            technique=str(entry["technique"]),
            keywords=tuple(str(k).lower() for k in entry.get("keywords") or ()),
            severity_range=(int(low), int(high)),
            target_severity=int(entry["target_severity"]),
            evidence_tier=EvidenceTier(str(entry.get("evidence_tier", "ungraded"))),
            response=str(entry["response"]),
            instructions=tuple(str(s) for s in entry.get("instructions") or ()),
            follow_up=str(entry.get("follow_up", "")),
            tags=frozenset(entry.get("tags") or ()),
            components=frozenset(entry.get("components") or ()),
            contraindications=frozenset(entry.get("contraindications") or ()),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise LexiconError(f"Malformed intervention {entry.get('id', '?')!r}: {e}") from e
