"""Response Service: composes outbound turn responses.

Components:
- responses.py: ResponseEnvelope with StandardResponse and CrisisResponse variants
- composer.py: ResponseComposer template fill and crisis protocol responses
"""

from .composer import FALLBACK_EMPTY, FALLBACK_ERROR, ResponseComposer
from .responses import (
    CrisisResponse,
    ResponseEnvelope,
    ResponseKind,
    SessionInfo,
    StandardResponse,
    SuggestedAction,
)

__all__ = [
    "CrisisResponse",
    "FALLBACK_EMPTY",
    "FALLBACK_ERROR",
    "ResponseComposer",
    "ResponseEnvelope",
    "ResponseKind",
    "SessionInfo",
    "StandardResponse",
    "SuggestedAction",
]
