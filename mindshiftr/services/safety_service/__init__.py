"""Safety Service: deterministic crisis detection.

Every message passes through the CrisisDetector before any intervention is
selected. A positive assessment short-circuits the pipeline to a canned
crisis response built from the CrisisProtocolBook.

Components:
- crisis_detector.py: CrisisDetector with four OR'd signal classes
- protocols.py: Reviewed crisis messages and resources per crisis type
- text_normalizer.py: Evasion-resistant normalization (leetspeak, unicode)
- config.py: CrisisThresholds
"""

from .config import CrisisThresholds
from .crisis_detector import (
    SIGNAL_EMOTIONAL,
    SIGNAL_KEYWORD,
    SIGNAL_PHRASE,
    SIGNAL_THRESHOLD,
    CrisisDetector,
)
from .protocols import (
    STATIC_CRISIS_MESSAGE,
    STATIC_RESOURCES,
    CrisisProtocol,
    CrisisProtocolBook,
    CrisisResource,
)
from .text_normalizer import TextNormalizer

__all__ = [
    "CrisisDetector",
    "CrisisProtocol",
    "CrisisProtocolBook",
    "CrisisResource",
    "CrisisThresholds",
    "SIGNAL_EMOTIONAL",
    "SIGNAL_KEYWORD",
    "SIGNAL_PHRASE",
    "SIGNAL_THRESHOLD",
    "STATIC_CRISIS_MESSAGE",
    "STATIC_RESOURCES",
    "TextNormalizer",
]
