"""Shared utilities for the MindShiftr triage engine."""
from .pii import (
    MIN_SALT_LENGTH,
    configure_pii_salt,
    hash_pii,
    hash_session_id,
    hash_text_for_audit,
    hash_user_id,
    is_pii_salt_configured,
    validate_pii_salt,
)

__all__ = [
    "MIN_SALT_LENGTH",
    "configure_pii_salt",
    "hash_pii",
    "hash_session_id",
    "hash_text_for_audit",
    "hash_user_id",
    "is_pii_salt_configured",
    "validate_pii_salt",
]
