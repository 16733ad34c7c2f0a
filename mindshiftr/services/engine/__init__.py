"""Triage Engine: orchestration of the per-turn pipeline and its HTTP surface.

Components:
- engine.py: TriageEngine and TurnRequest
- handler.py: Flask app (import separately; it builds an engine at import)
- config.py: EngineConfig from environment variables
"""

from .config import EngineConfig
from .engine import FALLBACK_SESSION_CONFLICT, TriageEngine, TurnRequest

__all__ = ["EngineConfig", "FALLBACK_SESSION_CONFLICT", "TriageEngine", "TurnRequest"]
