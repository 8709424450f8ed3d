"""Shared type definitions for the LLM adapter layer.

- Turn: one provider-agnostic prompt turn
- LLMRequest: what the AssistantClient asks an adapter for
- LLMUsage / LLMResponse: result of a buffered call
- LLMChunk: one piece of a streamed call

Streaming contract:
- Non-terminal chunks carry text and no usage
- The last chunk has done=True (its text may be empty)
- A provider stream that ends without its terminal marker is a provider failure
"""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class Turn:
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class LLMUsage:
    """Token counts, when the provider reports them."""

    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None


@dataclass(frozen=True)
class LLMRequest:
    """Request to an LLM adapter.

    Attributes:
        model_name: Provider model identifier (e.g. "gpt-4o-mini", "gemini-2.0-flash")
        messages: Prompt turns, system turn first
        max_tokens: Completion budget
        temperature: Sampling temperature; None leaves the provider default
    """

    model_name: str
    messages: list[Turn]
    max_tokens: int
    temperature: float | None = None


@dataclass(frozen=True)
class LLMResponse:
    text: str
    usage: LLMUsage | None
    provider_request_id: str | None


@dataclass(frozen=True)
class LLMChunk:
    """Single chunk from a streaming response.

    Attributes:
        delta_text: Text added by this chunk (may be empty on the terminal chunk)
        done: True on the final chunk only
        usage: Token usage; only allowed on the terminal chunk
        provider_request_id: Provider's request id, terminal chunk only
    """

    delta_text: str
    done: bool
    usage: LLMUsage | None = None
    provider_request_id: str | None = None

    def __post_init__(self):
        if not self.done and self.usage is not None:
            raise ValueError("Non-terminal chunks (done=False) must have usage=None")
