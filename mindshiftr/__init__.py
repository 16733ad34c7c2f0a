"""MindShiftr: conversational triage and intervention recommendation.

Reads a user's message, decides whether they are in crisis, and otherwise
recommends a clinically validated, personalized coping intervention.
"""

__version__ = "0.4.0"
