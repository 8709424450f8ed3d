"""Tests for the log guard and text hashing."""

import hashlib

import pytest

from euroassist.services.redact import FORBIDDEN_KEYS, hash_text, safe_kv


class TestSafeKv:
    def test_allowed_keys_pass_through(self):
        fields = safe_kv(provider="openai", prompt_chars=120, latency_ms=42)

        assert fields == {"provider": "openai", "prompt_chars": 120, "latency_ms": 42}

    @pytest.mark.parametrize("key", sorted(FORBIDDEN_KEYS))
    def test_forbidden_key_raises_in_test(self, key):
        with pytest.raises(ValueError, match="Forbidden log keys"):
            safe_kv(**{key: "sensitive"})

    @pytest.mark.parametrize("suffix", ["_sha256", "_hash", "_length", "_chars"])
    def test_redacted_suffix_allowed(self, suffix):
        key = f"content{suffix}"

        assert safe_kv(**{key: 1}) == {key: 1}

    def test_deployed_env_warns_instead_of_raising(self):
        fields = safe_kv(_env="prod", email="someone@example.com")

        assert fields == {"email": "someone@example.com"}

    def test_local_env_raises(self):
        with pytest.raises(ValueError):
            safe_kv(_env="local", password="x")


class TestHashText:
    def test_sha256_hex(self):
        assert hash_text("hello") == hashlib.sha256(b"hello").hexdigest()

    def test_stable_and_distinct(self):
        assert hash_text("a") == hash_text("a")
        assert hash_text("a") != hash_text("b")
