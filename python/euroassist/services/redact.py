"""Hashing and log guard utilities.

- hash_text: stable SHA-256 hex digest for log correlation
- safe_kv: log guard that blocks forbidden keys at call site

Never-log policy:
- API keys and session cookies
- Passwords and email addresses
- Rendered prompts
- Message content and generated titles

Allowed (with suffix):
- _chars, _length: length of text
- _sha256, _hash: hash of text
- Token counts, latency, provider request ID
"""

import hashlib
import os

import structlog

FORBIDDEN_KEYS = frozenset(
    {
        "prompt",
        "content",
        "question",
        "answer",
        "title",
        "email",
        "api_key",
        "cookie",
        "token",
        "secret",
        "password",
        "raw_body",
    }
)

REDACTED_SUFFIXES = ("_sha256", "_hash", "_length", "_chars")


def hash_text(value: str) -> str:
    """SHA-256 hex digest of a string, for correlating log lines without exposing text."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def _has_redacted_suffix(key: str) -> bool:
    return any(key.endswith(suffix) for suffix in REDACTED_SUFFIXES)


def safe_kv(*, _env: str | None = None, **kwargs) -> dict:
    """Validate that no forbidden keys are present unless already redacted.

    Raises ValueError in local/test environments if a forbidden key is used.
    In staging/prod, logs a warning instead.

    Usage:
        logger.info("llm.request.started", **safe_kv(
            provider="openai",
            model_name="gpt-4o-mini",
            prompt_chars=1234,        # OK: _chars suffix
            # prompt="hello world",   # BLOCKED: forbidden key
        ))

    Args:
        _env: Override for EUROASSIST_ENV (test-only). If None, reads from env.
        **kwargs: Keyword arguments to validate and return.

    Returns:
        The same kwargs dict, after validation.
    """
    violations = [
        key for key in kwargs if key in FORBIDDEN_KEYS and not _has_redacted_suffix(key)
    ]

    if violations:
        msg = f"Forbidden log keys without redacted suffix: {violations}"
        env = _env or os.environ.get("EUROASSIST_ENV", "local")
        if env in ("local", "test"):
            raise ValueError(msg)
        structlog.get_logger("euroassist.services.redact").warning(
            "safe_kv_violation", forbidden_keys=violations
        )

    return kwargs
