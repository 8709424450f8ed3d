"""OpenAI chat completions adapter.

- Endpoint: POST {base_url}/chat/completions (default https://api.openai.com/v1)
- Auth: Authorization: Bearer <key>
- Streaming: SSE `data: {...}` events carrying choices[0].delta.content,
  terminated by `data: [DONE]`

Buffered response fields used:
- choices[0].message.content → text (null content counts as empty)
- usage.{prompt,completion,total}_tokens → LLMUsage
- x-request-id header, else body id → provider_request_id
"""

import json
from collections.abc import AsyncIterator

import httpx

from euroassist.services.llm.adapter import LLMAdapter, iter_sse_data
from euroassist.services.llm.errors import LLMError, LLMErrorClass
from euroassist.services.llm.types import LLMChunk, LLMRequest, LLMResponse, LLMUsage

OPENAI_BASE_URL = "https://api.openai.com/v1"


def _usage_from(data: dict | None) -> LLMUsage | None:
    if not data:
        return None
    return LLMUsage(
        prompt_tokens=data.get("prompt_tokens"),
        completion_tokens=data.get("completion_tokens"),
        total_tokens=data.get("total_tokens"),
    )


class OpenAIAdapter(LLMAdapter):
    """OpenAI API adapter for chat completions."""

    provider = "openai"

    def __init__(self, client: httpx.AsyncClient, base_url: str = OPENAI_BASE_URL):
        super().__init__(client)
        self._url = f"{base_url.rstrip('/')}/chat/completions"

    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        response = await self._client.post(
            self._url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req, stream=False),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )
        response.raise_for_status()

        data = response.json()
        choices = data.get("choices") or []
        if not choices:
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "OpenAI response missing choices",
                provider=self.provider,
            )

        return LLMResponse(
            text=(choices[0].get("message") or {}).get("content") or "",
            usage=_usage_from(data.get("usage")),
            provider_request_id=response.headers.get("x-request-id") or data.get("id"),
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
            self._url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req, stream=True),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        ) as response:
            response.raise_for_status()
            provider_request_id = response.headers.get("x-request-id")
            usage: LLMUsage | None = None

            async for payload in iter_sse_data(response):
                if payload == "[DONE]":
                    yield LLMChunk(
                        delta_text="",
                        done=True,
                        usage=usage,
                        provider_request_id=provider_request_id,
                    )
                    return

                try:
                    data = json.loads(payload)
                except json.JSONDecodeError:
                    continue

                # With include_usage the final event has empty choices and the usage block
                usage = _usage_from(data.get("usage")) or usage
                choices = data.get("choices") or []
                if not choices:
                    continue

                delta_text = (choices[0].get("delta") or {}).get("content") or ""
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

        raise LLMError(
            LLMErrorClass.PROVIDER_DOWN,
            "OpenAI stream ended without [DONE] marker",
            provider=self.provider,
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest, stream: bool) -> dict:
        # Turn roles are already OpenAI role names
        body: dict = {
            "model": req.model_name,
            "messages": [{"role": turn.role, "content": turn.content} for turn in req.messages],
            "max_tokens": req.max_tokens,
            "stream": stream,
        }
        if stream:
            body["stream_options"] = {"include_usage": True}
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body
