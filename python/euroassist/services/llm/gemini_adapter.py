"""Google Gemini adapter.

- Buffered: POST {base_url}/{model}:generateContent
- Streaming: POST {base_url}/{model}:streamGenerateContent?alt=sse

Auth goes in the x-goog-api-key header, never in the query string, so URLs
are safe to log.

Turn conversion:
- The system turn becomes systemInstruction
- "assistant" is sent as role "model"
- Each turn is a single text part

Streaming terminates on the first candidate carrying a finishReason of
STOP or MAX_TOKENS; usageMetadata from that event becomes the chunk usage.
"""

import json
from collections.abc import AsyncIterator

import httpx

from euroassist.services.llm.adapter import LLMAdapter, iter_sse_data
from euroassist.services.llm.errors import LLMError, LLMErrorClass
from euroassist.services.llm.types import LLMChunk, LLMRequest, LLMResponse, LLMUsage

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

TERMINAL_FINISH_REASONS = {"STOP", "MAX_TOKENS"}


def _usage_from(data: dict | None) -> LLMUsage | None:
    if not data:
        return None
    return LLMUsage(
        prompt_tokens=data.get("promptTokenCount"),
        completion_tokens=data.get("candidatesTokenCount"),
        total_tokens=data.get("totalTokenCount"),
    )


def _candidate_text(candidate: dict) -> str:
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)


class GeminiAdapter(LLMAdapter):
    """Google Gemini API adapter."""

    provider = "gemini"

    def __init__(self, client: httpx.AsyncClient, base_url: str = GEMINI_BASE_URL):
        super().__init__(client)
        self._base_url = base_url.rstrip("/")

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        response = await self._client.post(
            f"{self._base_url}/{req.model_name}:generateContent",
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        data = response.json()
        candidates = data.get("candidates") or []
        if not candidates:
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Gemini response missing candidates",
                provider=self.provider,
            )

        # Gemini doesn't return a request ID
        return LLMResponse(
            text=_candidate_text(candidates[0]),
            usage=_usage_from(data.get("usageMetadata")),
            provider_request_id=None,
        )

    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> AsyncIterator[LLMChunk]:
        async with self._client.stream(
            "POST",
            f"{self._base_url}/{req.model_name}:streamGenerateContent?alt=sse",
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        ) as response:
            response.raise_for_status()

            async for payload in iter_sse_data(response):
                try:
                    data = json.loads(payload)
                except json.JSONDecodeError:
                    continue

                candidates = data.get("candidates") or []
                if not candidates:
                    continue

                candidate = candidates[0]
                delta_text = _candidate_text(candidate)
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

                if candidate.get("finishReason") in TERMINAL_FINISH_REASONS:
                    yield LLMChunk(
                        delta_text="",
                        done=True,
                        usage=_usage_from(data.get("usageMetadata")),
                    )
                    return

        raise LLMError(
            LLMErrorClass.PROVIDER_DOWN,
            "Gemini stream ended without a finish reason",
            provider=self.provider,
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        system_prompt = None
        contents = []

        for turn in req.messages:
            if turn.role == "system":
                system_prompt = turn.content
                continue
            contents.append(
                {
                    "role": "model" if turn.role == "assistant" else turn.role,
                    "parts": [{"text": turn.content}],
                }
            )

        generation_config: dict = {"maxOutputTokens": req.max_tokens}
        if req.temperature is not None:
            generation_config["temperature"] = req.temperature

        body: dict = {"contents": contents, "generationConfig": generation_config}
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        return body
