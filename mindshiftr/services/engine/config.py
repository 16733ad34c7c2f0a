"""Engine configuration."""
import os
from dataclasses import dataclass
from typing import Optional

from mindshiftr.shared.utils import validate_pii_salt


DEV_PII_SALT = "default_dev_salt_change_in_production_32chars"


@dataclass(frozen=True)
class EngineConfig:
    """Deployment settings for the triage engine and its HTTP handler."""
    lexicon_path: Optional[str] = None
    catalog_path: Optional[str] = None
    session_idle_seconds: float = 1800.0
    pii_salt: str = DEV_PII_SALT
    port: int = 8010

    def __post_init__(self):
        if self.session_idle_seconds <= 0:
            raise ValueError(
                f"session_idle_seconds must be positive, got {self.session_idle_seconds}"
            )
        validate_pii_salt(self.pii_salt)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from environment variables.

        Environment variables:
            MINDSHIFTR_LEXICON_PATH: Lexicon YAML override (default bundled)
            MINDSHIFTR_CATALOG_PATH: Intervention catalog override (default bundled)
            MINDSHIFTR_SESSION_IDLE_SECONDS: Idle timeout before eviction (default 1800)
            PII_HASH_SALT: Salt for hashing identifiers in logs
            PORT: HTTP port (default 8010)
        """
        return cls(
            lexicon_path=os.getenv("MINDSHIFTR_LEXICON_PATH") or None,
            catalog_path=os.getenv("MINDSHIFTR_CATALOG_PATH") or None,
            session_idle_seconds=float(os.getenv("MINDSHIFTR_SESSION_IDLE_SECONDS", "1800")),
            pii_salt=os.getenv("PII_HASH_SALT", DEV_PII_SALT),
            port=int(os.getenv("PORT", "8010")),
        )
