"""Canned crisis protocols.

Crisis responses are never generated: each crisis type maps to reviewed
messages, the techniques they represent, and the shared resource list.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from mindshiftr.shared.lexicon import Lexicon, LexiconError, load_lexicon
from mindshiftr.shared.models import CrisisType


@dataclass(frozen=True)
class CrisisResource:
    name: str
    contact: str
    available: str = "24/7"

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "contact": self.contact, "available": self.available}


@dataclass(frozen=True)
class CrisisProtocol:
    crisis_type: CrisisType
    messages: Tuple[str, ...]
    techniques: Tuple[str, ...]
    resources: Tuple[CrisisResource, ...]

    def message_for_turn(self, turn: int) -> str:
        """Rotate through the reviewed messages deterministically."""
        return self.messages[turn % len(self.messages)]


# Used when the lexicon itself cannot be consulted
STATIC_CRISIS_MESSAGE = (
    "I'm concerned about your safety. Please call or text the 988 Suicide & Crisis "
    "Lifeline, or text HOME to 741741 to reach the Crisis Text Line. If you are in "
    "immediate danger, call 911."
)
STATIC_RESOURCES: Tuple[CrisisResource, ...] = (
    CrisisResource(name="988 Suicide & Crisis Lifeline", contact="988"),
    CrisisResource(name="Crisis Text Line", contact="Text HOME to 741741"),
    CrisisResource(name="Emergency Services", contact="911"),
)


class CrisisProtocolBook:
    """Crisis protocols keyed by crisis type."""

    def __init__(self, lexicon: Optional[Lexicon] = None):
        lexicon = lexicon or load_lexicon()
        resources = tuple(_resource(entry) for entry in lexicon.section("crisis", "resources"))
        if not resources:
            raise LexiconError("Crisis resources must not be empty")

        self._protocols: Dict[CrisisType, CrisisProtocol] = {}
        for type_name, entry in lexicon.section("crisis", "protocols").items():
            messages = tuple(entry.get("messages") or ())
            if not messages:
                raise LexiconError(f"Crisis protocol {type_name} has no messages")
            crisis_type = CrisisType(type_name)
            self._protocols[crisis_type] = CrisisProtocol(
                crisis_type=crisis_type,
                messages=messages,
                techniques=tuple(entry.get("techniques") or ("crisis_intervention",)),
                resources=resources,
            )

        if CrisisType.SEVERE_DISTRESS not in self._protocols:
            raise LexiconError("A severe-distress crisis protocol is required")

    def protocol_for(self, crisis_type: CrisisType) -> CrisisProtocol:
        """Protocol for the type, falling back to severe distress."""
        return self._protocols.get(crisis_type, self._protocols[CrisisType.SEVERE_DISTRESS])

    @property
    def crisis_types(self) -> List[CrisisType]:
        return list(self._protocols)


def _resource(entry: Any) -> CrisisResource:
    try:
        return CrisisResource(
            name=str(entry["name"]),
            contact=str(entry["contact"]),
            available=str(entry.get("available", "24/7")),
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise LexiconError(f"Malformed crisis resource entry: {entry!r}") from e
