"""LLM layer for provider-agnostic assistant calls.

This module provides one interface over OpenAI and Gemini models:

- Provider adapters with async support (buffered + streaming)
- Error classification and normalization
- Prompt rendering (provider-agnostic)
- AssistantClient: answers, streamed answers and chat titles

Usage:
    from euroassist.services.llm import AssistantClient

    assistant = AssistantClient.from_settings(httpx_client, get_settings())
    answer = await assistant.generate("What are Oxford's tuition fees?")
    async for delta in assistant.generate_stream("Best universities in Spain?"):
        ...

Adapter rules:
- Adapters are async using httpx.AsyncClient
- No retries, no DB access
- No logging of prompts or completions
- Raw provider errors bubble up to AssistantClient for classification
"""

from euroassist.services.llm.adapter import LLMAdapter
from euroassist.services.llm.client import AssistantClient, resolve_adapter
from euroassist.services.llm.errors import (
    GENERATION_FAILED_MESSAGE,
    GenerationError,
    LLMError,
    LLMErrorClass,
    classify_provider_error,
)
from euroassist.services.llm.gemini_adapter import GeminiAdapter
from euroassist.services.llm.openai_adapter import OpenAIAdapter
from euroassist.services.llm.prompt import (
    DEFAULT_TITLE,
    EMPTY_ANSWER_FALLBACK,
    SYSTEM_PROMPT,
    TITLE_PROMPT,
    clean_title,
    render_prompt,
)
from euroassist.services.llm.types import (
    LLMChunk,
    LLMRequest,
    LLMResponse,
    LLMUsage,
    Turn,
)

__all__ = [
    # Core types
    "Turn",
    "LLMRequest",
    "LLMResponse",
    "LLMChunk",
    "LLMUsage",
    # Adapters
    "LLMAdapter",
    "OpenAIAdapter",
    "GeminiAdapter",
    # Client
    "AssistantClient",
    "resolve_adapter",
    # Errors
    "GENERATION_FAILED_MESSAGE",
    "GenerationError",
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    # Prompt rendering
    "DEFAULT_TITLE",
    "EMPTY_ANSWER_FALLBACK",
    "SYSTEM_PROMPT",
    "TITLE_PROMPT",
    "clean_title",
    "render_prompt",
]
