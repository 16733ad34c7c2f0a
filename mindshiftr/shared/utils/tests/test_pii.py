"""Tests for identifier hashing."""
import logging

import pytest

from mindshiftr.shared.utils import pii
from mindshiftr.shared.utils import (
    configure_pii_salt,
    hash_pii,
    hash_session_id,
    hash_text_for_audit,
    hash_user_id,
)
from mindshiftr.services.engine import EngineConfig

SALT = "test_salt_that_is_at_least_32_characters_long"


@pytest.fixture(autouse=True)
def setup_pii_salt():
    """Configure PII salt before each test."""
    configure_pii_salt(SALT)


class TestIdentifierHashing:

    def test_same_id_differs_between_user_and_session(self):
        assert hash_user_id("s1") != hash_session_id("s1")

    def test_hash_is_stable(self):
        assert hash_user_id("alice") == hash_user_id("alice")
        assert len(hash_session_id("sess_1")) == 64

    def test_raw_id_not_in_digest(self):
        assert "alice" not in hash_user_id("alice")

    def test_helpers_use_namespaces(self):
        assert hash_user_id("alice") == hash_pii(pii.USER_NAMESPACE, "alice")
        assert hash_session_id("alice") == hash_pii(pii.SESSION_NAMESPACE, "alice")

    def test_prefixed_user_id_does_not_collide_with_session(self):
        assert hash_pii(pii.USER_NAMESPACE, "session:x") != hash_session_id("x")

    def test_changing_salt_changes_digest(self):
        before = hash_user_id("alice")
        configure_pii_salt("another_salt_that_is_at_least_32_characters")

        assert hash_user_id("alice") != before

    def test_text_fingerprint_ignores_salt(self):
        before = hash_text_for_audit("hello")
        configure_pii_salt("another_salt_that_is_at_least_32_characters")

        assert hash_text_for_audit("hello") == before


class TestSaltConfiguration:

    @pytest.mark.parametrize("salt", ["", "short", None])
    def test_rejects_short_salt(self, salt, caplog):
        with caplog.at_level(logging.CRITICAL):
            with pytest.raises(ValueError):
                configure_pii_salt(salt)

        assert any(r.getMessage() == "PII_SALT_CONFIGURATION_FAILED" for r in caplog.records)

    def test_unconfigured_salt_raises(self, monkeypatch):
        monkeypatch.setattr(pii, "_PII_SALT", None)

        with pytest.raises(RuntimeError):
            hash_user_id("alice")

    def test_engine_config_rejects_short_salt(self):
        with pytest.raises(ValueError):
            EngineConfig(pii_salt="too_short")

    def test_engine_config_from_env(self, monkeypatch):
        monkeypatch.setenv("PII_HASH_SALT", SALT)

        assert EngineConfig.from_env().pii_salt == SALT
