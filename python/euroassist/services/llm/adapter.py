"""Abstract base class for LLM adapters.

Adapter rules:
- Async, on the shared httpx.AsyncClient created in the app lifespan
- No retries, no DB access
- Never log prompt or completion text
- Raw httpx errors bubble up; AssistantClient classifies them
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import httpx

from euroassist.services.llm.types import LLMChunk, LLMRequest, LLMResponse


class LLMAdapter(ABC):
    """Provider adapter: Turn → provider payload, provider response → LLMResponse/LLMChunk.

    Attributes:
        provider: Provider name used for error classification and logging.
        supports_streaming: False makes AssistantClient fall back to one buffered delta.
    """

    provider: str = ""
    supports_streaming: bool = True

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    @abstractmethod
    async def generate(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> LLMResponse:
        """Buffered generation.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            httpx.NetworkError: On network failure.
        """

    @abstractmethod
    def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation. Yields chunks, the last one with done=True.

        Raises:
            httpx.HTTPStatusError: On non-2xx HTTP response.
            httpx.TimeoutException: On request timeout.
            LLMError: If the stream ends without the provider's terminal marker.
        """


async def iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the payload of every `data:` line of a provider SSE response.

    Comments, event names and blank keep-alive lines are skipped.
    """
    async for line in response.aiter_lines():
        if not line or not line.startswith("data:"):
            continue
        yield line[5:].lstrip()
