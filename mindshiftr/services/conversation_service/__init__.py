"""Conversation Service: session state and conversation flow.

Components:
- session_manager.py: SessionManager (lifecycle, crisis ratchet, de-escalation)
- flow.py: FlowTracker stage/momentum/depth/tone state machine
"""

from .flow import FlowTracker
from .session_manager import SessionClosedError, SessionManager, SessionOwnershipError

__all__ = ["FlowTracker", "SessionClosedError", "SessionManager", "SessionOwnershipError"]
