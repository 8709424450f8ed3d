"""LLM error classification and normalization.

Provider failures are normalized in two steps:
- classify_provider_error() maps an HTTP status / body / exception onto an LLMErrorClass
- AssistantClient wraps the result in GenerationError, whose message is safe to
  show to end users

Error classes:
- E_LLM_INVALID_KEY: Authentication failure (401/403)
- E_LLM_RATE_LIMIT: Rate limit or quota exceeded (429)
- E_LLM_CONTEXT_TOO_LARGE: Prompt longer than the model accepts
- E_LLM_TIMEOUT: Request timed out
- E_LLM_PROVIDER_DOWN: Provider unavailable (5xx, network error, broken stream)
- E_MODEL_NOT_AVAILABLE: Model not found or disabled
"""

from enum import Enum

from euroassist.logging import get_logger

logger = get_logger(__name__)

GENERATION_FAILED_MESSAGE = "Failed to generate a response. Please try again later."


class LLMErrorClass(str, Enum):
    """Normalized LLM error classifications."""

    INVALID_KEY = "E_LLM_INVALID_KEY"
    RATE_LIMIT = "E_LLM_RATE_LIMIT"
    CONTEXT_TOO_LARGE = "E_LLM_CONTEXT_TOO_LARGE"
    TIMEOUT = "E_LLM_TIMEOUT"
    PROVIDER_DOWN = "E_LLM_PROVIDER_DOWN"
    MODEL_NOT_AVAILABLE = "E_MODEL_NOT_AVAILABLE"


class LLMError(Exception):
    """Adapter-level failure with a normalized classification.

    Attributes:
        error_class: The normalized error classification
        message: Diagnostic message (may contain provider detail; log only)
        provider: The provider that returned the error (if known)
    """

    def __init__(
        self,
        error_class: LLMErrorClass,
        message: str,
        provider: str | None = None,
    ):
        self.error_class = error_class
        self.message = message
        self.provider = provider
        super().__init__(message)


class GenerationError(Exception):
    """Raised by AssistantClient when an answer could not be produced.

    The message is the user-facing text; the provider detail stays in
    error_class and the logs.
    """

    def __init__(
        self,
        error_class: LLMErrorClass = LLMErrorClass.PROVIDER_DOWN,
        message: str = GENERATION_FAILED_MESSAGE,
    ):
        self.error_class = error_class
        self.message = message
        super().__init__(message)


def classify_provider_error(
    provider: str,
    status_code: int | None,
    json_body: dict | None,
    exception: Exception | None,
) -> LLMErrorClass:
    """Classify a provider failure into a normalized error class.

    Args:
        provider: "openai" or "gemini"
        status_code: HTTP status code (if available)
        json_body: Parsed JSON error response (if available)
        exception: The exception that was raised (if any)

    Returns:
        The appropriate LLMErrorClass for this error.
    """
    # Transport failures carry no status code
    if exception is not None:
        exception_type = type(exception).__name__
        if "Timeout" in exception_type or "timeout" in str(exception).lower():
            return LLMErrorClass.TIMEOUT
        if "Network" in exception_type or "Connect" in exception_type:
            return LLMErrorClass.PROVIDER_DOWN

    if status_code is None:
        return LLMErrorClass.PROVIDER_DOWN

    if provider == "openai":
        return _classify_openai_error(status_code, json_body)
    if provider == "gemini":
        return _classify_gemini_error(status_code, json_body)

    logger.warning("unknown_provider_for_error_classification", provider=provider)
    return LLMErrorClass.PROVIDER_DOWN


def _classify_openai_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    """OpenAI: 401/403 key, 429 rate limit, 404 model, 5xx down, 400 context/model."""
    if status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429:
        return LLMErrorClass.RATE_LIMIT

    if status_code == 404:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    if status_code >= 500:
        return LLMErrorClass.PROVIDER_DOWN

    if status_code == 400 and json_body:
        error = json_body.get("error") or {}
        error_code = error.get("code") or ""
        error_message = (error.get("message") or "").lower()

        if error_code == "context_length_exceeded" or "maximum context length" in error_message:
            return LLMErrorClass.CONTEXT_TOO_LARGE
        if error_code == "model_not_found" or (
            "model" in error_message and "does not exist" in error_message
        ):
            return LLMErrorClass.MODEL_NOT_AVAILABLE

    return LLMErrorClass.PROVIDER_DOWN


def _classify_gemini_error(status_code: int, json_body: dict | None) -> LLMErrorClass:
    """Gemini reports most failures in the body status string, so check it first."""
    body_str = str(json_body).lower() if json_body else ""

    if "api_key_invalid" in body_str or status_code in (401, 403):
        return LLMErrorClass.INVALID_KEY

    if status_code == 429 or "resource_exhausted" in body_str:
        return LLMErrorClass.RATE_LIMIT

    if "exceeds the maximum" in body_str:
        return LLMErrorClass.CONTEXT_TOO_LARGE

    if status_code == 404 or "is not found" in body_str or "model not found" in body_str:
        return LLMErrorClass.MODEL_NOT_AVAILABLE

    return LLMErrorClass.PROVIDER_DOWN
