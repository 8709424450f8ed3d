"""AssistantClient - the application's single entry point to the LLM provider.

- Resolves one adapter from configuration at startup (openai | gemini)
- Wraps adapter calls with error normalization (httpx errors → LLMError)
- Turns LLMError into GenerationError for answers; titles never fail
- Emits llm.request.started / llm.request.finished / llm.request.failed events
  with size metrics only, through safe_kv()

Error handling:
- Provider 401/403 → E_LLM_INVALID_KEY
- Provider 429 → E_LLM_RATE_LIMIT
- Timeout → E_LLM_TIMEOUT
- Context too large → E_LLM_CONTEXT_TOO_LARGE
- Other → E_LLM_PROVIDER_DOWN
"""

import time
from collections.abc import AsyncIterator

import httpx

from euroassist.config import Settings
from euroassist.logging import get_logger
from euroassist.services.llm.adapter import LLMAdapter
from euroassist.services.llm.errors import (
    GenerationError,
    LLMError,
    LLMErrorClass,
    classify_provider_error,
)
from euroassist.services.llm.gemini_adapter import GeminiAdapter
from euroassist.services.llm.openai_adapter import OpenAIAdapter
from euroassist.services.llm.prompt import (
    ANSWER_MAX_TOKENS,
    ANSWER_TEMPERATURE,
    DEFAULT_TITLE,
    EMPTY_ANSWER_FALLBACK,
    TITLE_MAX_TOKENS,
    TITLE_PROMPT,
    TITLE_TEMPERATURE,
    clean_title,
    render_prompt,
)
from euroassist.services.llm.types import LLMChunk, LLMRequest, LLMResponse
from euroassist.services.redact import safe_kv

logger = get_logger(__name__)

# Default timeout for LLM requests in seconds
DEFAULT_TIMEOUT_S = 45

ADAPTERS: dict[str, type[LLMAdapter]] = {
    "openai": OpenAIAdapter,
    "gemini": GeminiAdapter,
}


def resolve_adapter(provider: str, client: httpx.AsyncClient) -> LLMAdapter:
    """Instantiate the adapter for a provider name.

    Raises:
        LLMError(MODEL_NOT_AVAILABLE): If the provider is unknown.
    """
    adapter_cls = ADAPTERS.get(provider)
    if adapter_cls is None:
        raise LLMError(
            LLMErrorClass.MODEL_NOT_AVAILABLE,
            f"Unknown provider: {provider}",
            provider=provider,
        )
    return adapter_cls(client)


def _safe_parse_json(response: httpx.Response) -> dict | None:
    try:
        return response.json()
    except Exception:
        return None


class AssistantClient:
    """Buffered, streaming and title generation against one configured provider."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider: str,
        api_key: str | None,
        model_name: str,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
        adapter: LLMAdapter | None = None,
    ):
        """Initialize with the shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            provider: "openai" or "gemini".
            api_key: Provider API key. None makes every call fail with E_LLM_INVALID_KEY.
            model_name: Provider model identifier.
            timeout_s: Upstream timeout per call.
            adapter: Explicit adapter (tests); otherwise resolved from provider.
        """
        self.provider = provider
        self.model_name = model_name
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._adapter = adapter or resolve_adapter(provider, client)

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "AssistantClient":
        return cls(
            client,
            settings.llm_provider,
            settings.llm_api_key,
            settings.llm_model_name,
            timeout_s=settings.llm_timeout_s,
        )

    @property
    def supports_streaming(self) -> bool:
        return self._adapter.supports_streaming

    # =========================================================================
    # Public API
    # =========================================================================

    async def generate(self, question: str) -> str:
        """Buffered answer to a user question.

        Returns:
            The completion text, or EMPTY_ANSWER_FALLBACK if the provider returned nothing.

        Raises:
            GenerationError: On any provider failure. Never returns partial content.
        """
        try:
            response = await self.complete(self._answer_request(question), operation="answer")
        except LLMError as e:
            raise GenerationError(e.error_class) from e

        return response.text.strip() or EMPTY_ANSWER_FALLBACK

    async def generate_stream(self, question: str) -> AsyncIterator[str]:
        """Stream an answer as non-empty text deltas.

        Normal exhaustion marks the end. Deltas already yielded stay yielded when
        a later failure raises GenerationError. Adapters without streaming
        support produce one delta holding the buffered answer.
        """
        if not self._adapter.supports_streaming:
            yield await self.generate(question)
            return

        try:
            async for chunk in self.stream(self._answer_request(question), operation="answer"):
                if chunk.delta_text:
                    yield chunk.delta_text
        except LLMError as e:
            raise GenerationError(e.error_class) from e

    async def generate_title(self, first_user_message: str) -> str:
        """Short chat title for a first message; DEFAULT_TITLE on any failure."""
        req = LLMRequest(
            model_name=self.model_name,
            messages=render_prompt(first_user_message, system_prompt=TITLE_PROMPT),
            max_tokens=TITLE_MAX_TOKENS,
            temperature=TITLE_TEMPERATURE,
        )
        try:
            response = await self.complete(req, operation="title")
        except LLMError:
            return DEFAULT_TITLE
        return clean_title(response.text)

    # =========================================================================
    # Adapter calls with error normalization
    # =========================================================================

    def _answer_request(self, question: str) -> LLMRequest:
        return LLMRequest(
            model_name=self.model_name,
            messages=render_prompt(question),
            max_tokens=ANSWER_MAX_TOKENS,
            temperature=ANSWER_TEMPERATURE,
        )

    def _base_log_fields(self, req: LLMRequest, streaming: bool, operation: str) -> dict:
        return {
            "provider": self.provider,
            "model_name": req.model_name,
            "streaming": streaming,
            "llm_operation": operation,
            "prompt_chars": sum(len(m.content) for m in req.messages),
        }

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise LLMError(
                LLMErrorClass.INVALID_KEY,
                f"No API key configured for {self.provider}",
                provider=self.provider,
            )
        return self._api_key

    def _normalize(self, exc: Exception) -> LLMError:
        """Map any adapter exception onto an LLMError."""
        if isinstance(exc, LLMError):
            return exc
        if isinstance(exc, httpx.TimeoutException):
            return LLMError(LLMErrorClass.TIMEOUT, "Request timed out", provider=self.provider)
        if isinstance(exc, httpx.HTTPStatusError):
            error_class = classify_provider_error(
                self.provider, exc.response.status_code, _safe_parse_json(exc.response), None
            )
            return LLMError(
                error_class,
                f"Provider returned HTTP {exc.response.status_code}",
                provider=self.provider,
            )
        if isinstance(exc, httpx.HTTPError):
            return LLMError(
                classify_provider_error(self.provider, None, None, exc),
                "Network error",
                provider=self.provider,
            )
        return LLMError(
            LLMErrorClass.PROVIDER_DOWN,
            f"Unexpected error: {type(exc).__name__}",
            provider=self.provider,
        )

    def _log_failure(self, base: dict, error: LLMError, start: float) -> None:
        logger.error(
            "llm.request.failed",
            **safe_kv(
                **base,
                outcome="error",
                error_class=error.error_class.value,
                latency_ms=int((time.monotonic() - start) * 1000),
            ),
        )

    async def complete(self, req: LLMRequest, *, operation: str = "other") -> LLMResponse:
        """Non-streaming call with error normalization.

        Raises:
            LLMError: With normalized error class on failure.
        """
        base = self._base_log_fields(req, streaming=False, operation=operation)
        logger.info("llm.request.started", **safe_kv(**base))
        start = time.monotonic()

        try:
            api_key = self._require_api_key()
            response = await self._adapter.generate(
                req, api_key=api_key, timeout_s=self._timeout_s
            )
        except Exception as e:
            error = self._normalize(e)
            self._log_failure(base, error, start)
            raise error from e

        usage = response.usage
        logger.info(
            "llm.request.finished",
            **safe_kv(
                **base,
                outcome="success",
                latency_ms=int((time.monotonic() - start) * 1000),
                tokens_input=usage.prompt_tokens if usage else None,
                tokens_output=usage.completion_tokens if usage else None,
                tokens_total=usage.total_tokens if usage else None,
                completion_chars=len(response.text),
                provider_request_id=response.provider_request_id,
            ),
        )
        return response

    async def stream(
        self, req: LLMRequest, *, operation: str = "other"
    ) -> AsyncIterator[LLMChunk]:
        """Streaming call with error normalization.

        Yields:
            LLMChunk objects until the terminal chunk (done=True).

        Raises:
            LLMError: With normalized error class on failure.
        """
        base = self._base_log_fields(req, streaming=True, operation=operation)
        logger.info("llm.request.started", **safe_kv(**base))
        start = time.monotonic()
        completion_chars = 0

        try:
            api_key = self._require_api_key()
            async for chunk in self._adapter.generate_stream(
                req, api_key=api_key, timeout_s=self._timeout_s
            ):
                completion_chars += len(chunk.delta_text)
                if chunk.done:
                    usage = chunk.usage
                    logger.info(
                        "llm.request.finished",
                        **safe_kv(
                            **base,
                            outcome="success",
                            latency_ms=int((time.monotonic() - start) * 1000),
                            tokens_input=usage.prompt_tokens if usage else None,
                            tokens_output=usage.completion_tokens if usage else None,
                            tokens_total=usage.total_tokens if usage else None,
                            completion_chars=completion_chars,
                            provider_request_id=chunk.provider_request_id,
                        ),
                    )
                yield chunk
        except Exception as e:
            error = self._normalize(e)
            self._log_failure(base, error, start)
            raise error from e
