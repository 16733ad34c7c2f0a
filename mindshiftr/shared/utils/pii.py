"""Identifier hashing for logs.

User and session identifiers never appear in log records in the clear.
They are logged as keyed digests from hash_user_id() / hash_session_id().
Each kind of identifier is hashed in its own namespace, so a user named
"s1" and a session named "s1" produce unrelated digests and cannot be
joined across log fields. Message text is only ever logged as an
unkeyed fingerprint.
"""
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


MIN_SALT_LENGTH = 32

USER_NAMESPACE = "user"
SESSION_NAMESPACE = "session"

_PII_SALT: Optional[bytes] = None


def validate_pii_salt(salt: str) -> None:
    """Raise ValueError unless salt is long enough to key identifier hashes."""
    if not isinstance(salt, str) or len(salt) < MIN_SALT_LENGTH:
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")


def configure_pii_salt(salt: str) -> None:
    """Configure the key used for identifier hashing.

    Must be called once at startup, before any request is handled.
    Reconfiguring replaces the key; digests logged earlier will no longer
    match new ones.

    Args:
        salt: Secret salt value, usually from the PII_HASH_SALT variable

    Raises:
        ValueError: If salt is empty or shorter than MIN_SALT_LENGTH
    """
    global _PII_SALT
    try:
        validate_pii_salt(salt)
    except ValueError:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": MIN_SALT_LENGTH}
        )
        raise

    _PII_SALT = salt.encode()
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def is_pii_salt_configured() -> bool:
    return _PII_SALT is not None


def hash_pii(namespace: str, value: str) -> str:
    """Keyed digest of an identifier within a namespace.

    Args:
        namespace: Identifier kind, e.g. USER_NAMESPACE
        value: Identifier to hash

    Returns:
        64-char hex HMAC-SHA256 of "namespace:value"

    Raises:
        RuntimeError: If configure_pii_salt() has not been called
    """
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    return hmac.new(_PII_SALT, f"{namespace}:{value}".encode(), hashlib.sha256).hexdigest()


def hash_user_id(user_id: str) -> str:
    return hash_pii(USER_NAMESPACE, user_id)


def hash_session_id(session_id: str) -> str:
    return hash_pii(SESSION_NAMESPACE, session_id)


def hash_text_for_audit(text: str) -> str:
    """Unsalted fingerprint of message text, stable across deployments."""
    return hashlib.sha256(text.encode()).hexdigest()
