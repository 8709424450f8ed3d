"""Tests for LLM adapter layer.

Test coverage per provider:
- Non-streaming success (text + usage)
- Streaming success (deltas, terminal chunk, usage only on the terminal chunk)
- Stream cut short (no terminal marker) → LLMError(PROVIDER_DOWN)
- HTTP errors surface as httpx.HTTPStatusError for the client to classify
- Request payload shape (roles, system prompt, auth header placement)

Plus error classification and prompt rendering.

Explicitly Forbidden:
- Live provider calls
- Real API keys anywhere in test code

Note: These tests are pure unit tests that do NOT require database access.
They use respx to mock HTTP requests and test the LLM adapter layer in isolation.
"""

import json
from pathlib import Path

import httpx
import pytest
import respx

from euroassist.services.llm import (
    DEFAULT_TITLE,
    SYSTEM_PROMPT,
    LLMChunk,
    LLMError,
    LLMErrorClass,
    LLMRequest,
    LLMUsage,
    Turn,
    classify_provider_error,
    clean_title,
    render_prompt,
)
from euroassist.services.llm.gemini_adapter import GEMINI_BASE_URL, GeminiAdapter
from euroassist.services.llm.openai_adapter import OPENAI_BASE_URL, OpenAIAdapter

# Path to test fixtures
FIXTURES_DIR = Path(__file__).parent / "fixtures" / "llm"

OPENAI_URL = f"{OPENAI_BASE_URL}/chat/completions"
GEMINI_URL = f"{GEMINI_BASE_URL}/test-model:generateContent"
GEMINI_STREAM_URL = f"{GEMINI_BASE_URL}/test-model:streamGenerateContent?alt=sse"


def load_fixture(provider: str, filename: str) -> dict | str:
    """Load a test fixture file."""
    path = FIXTURES_DIR / provider / filename
    content = path.read_text()
    if filename.endswith(".json"):
        return json.loads(content)
    return content


async def collect(stream) -> list[LLMChunk]:
    return [chunk async for chunk in stream]


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def httpx_client():
    """Create an httpx AsyncClient for testing."""
    return httpx.AsyncClient()


@pytest.fixture
def llm_request():
    """Create a basic LLM request for testing."""
    return LLMRequest(
        model_name="test-model",
        messages=[
            Turn(role="system", content="You are helpful."),
            Turn(role="user", content="Is tuition free in Germany?"),
        ],
        max_tokens=100,
        temperature=0.7,
    )


# =============================================================================
# OpenAI Adapter Tests
# =============================================================================


class TestOpenAIAdapter:
    """Tests for OpenAI adapter."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_nonstream_success(self, httpx_client, llm_request):
        fixture = load_fixture("openai", "success_nonstream.json")
        route = respx.post(OPENAI_URL).respond(
            200, json=fixture, headers={"x-request-id": "req-test-123"}
        )

        adapter = OpenAIAdapter(httpx_client)
        response = await adapter.generate(llm_request, api_key="sk-test", timeout_s=30)

        assert response.text.startswith("Tuition at public universities")
        assert response.usage == LLMUsage(prompt_tokens=120, completion_tokens=14, total_tokens=134)
        assert response.provider_request_id == "req-test-123"

        sent = route.calls.last.request
        assert sent.headers["authorization"] == "Bearer sk-test"
        body = json.loads(sent.content)
        assert body["model"] == "test-model"
        assert body["stream"] is False
        assert body["max_tokens"] == 100
        assert body["messages"][0] == {"role": "system", "content": "You are helpful."}

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_null_content_is_empty(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(
            200, json={"id": "x", "choices": [{"message": {"role": "assistant", "content": None}}]}
        )

        response = await OpenAIAdapter(httpx_client).generate(
            llm_request, api_key="sk-test", timeout_s=30
        )

        assert response.text == ""
        assert response.provider_request_id == "x"

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_missing_choices(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(200, json={"id": "x", "choices": []})

        with pytest.raises(LLMError) as exc_info:
            await OpenAIAdapter(httpx_client).generate(llm_request, api_key="sk", timeout_s=30)

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_stream_success(self, httpx_client, llm_request):
        stream_content = load_fixture("openai", "success_stream_chunks.txt")
        route = respx.post(OPENAI_URL).respond(
            200,
            content=stream_content,
            headers={"x-request-id": "req-test-123", "content-type": "text/event-stream"},
        )

        chunks = await collect(
            OpenAIAdapter(httpx_client).generate_stream(
                llm_request, api_key="sk-test", timeout_s=30
            )
        )

        assert [c.delta_text for c in chunks[:-1]] == ["Tuition is ", "free in ", "Germany."]
        assert all(c.done is False and c.usage is None for c in chunks[:-1])
        assert chunks[-1].done is True
        assert chunks[-1].usage.total_tokens == 126
        assert chunks[-1].provider_request_id == "req-test-123"

        body = json.loads(route.calls.last.request.content)
        assert body["stream"] is True
        assert body["stream_options"] == {"include_usage": True}

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_stream_without_done_marker(self, httpx_client, llm_request):
        stream_content = load_fixture("openai", "success_stream_chunks.txt")
        truncated = stream_content.replace("data: [DONE]", "")
        respx.post(OPENAI_URL).respond(200, content=truncated)

        chunks: list[LLMChunk] = []
        with pytest.raises(LLMError) as exc_info:
            async for chunk in OpenAIAdapter(httpx_client).generate_stream(
                llm_request, api_key="sk-test", timeout_s=30
            ):
                chunks.append(chunk)

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN
        assert "".join(c.delta_text for c in chunks) == "Tuition is free in Germany."

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_invalid_key_401(self, httpx_client, llm_request):
        fixture = load_fixture("openai", "error_401.json")
        respx.post(OPENAI_URL).respond(401, json=fixture)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await OpenAIAdapter(httpx_client).generate(
                llm_request, api_key="sk-invalid", timeout_s=30
            )

        assert exc_info.value.response.status_code == 401

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_stream_http_error(self, httpx_client, llm_request):
        respx.post(OPENAI_URL).respond(503, json={"error": {"message": "overloaded"}})

        with pytest.raises(httpx.HTTPStatusError):
            await collect(
                OpenAIAdapter(httpx_client).generate_stream(
                    llm_request, api_key="sk-test", timeout_s=30
                )
            )

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_custom_base_url(self, httpx_client, llm_request):
        fixture = load_fixture("openai", "success_nonstream.json")
        route = respx.post("http://llm.internal/v1/chat/completions").respond(200, json=fixture)

        adapter = OpenAIAdapter(httpx_client, base_url="http://llm.internal/v1/")
        await adapter.generate(llm_request, api_key="sk-test", timeout_s=30)

        assert route.called


# =============================================================================
# Gemini Adapter Tests
# =============================================================================


class TestGeminiAdapter:
    """Tests for Gemini adapter."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_nonstream_success(self, httpx_client, llm_request):
        fixture = load_fixture("gemini", "success_nonstream.json")
        route = respx.post(GEMINI_URL).respond(200, json=fixture)

        response = await GeminiAdapter(httpx_client).generate(
            llm_request, api_key="gemini-test-key", timeout_s=30
        )

        assert response.text.startswith("Tuition at public universities")
        assert response.usage == LLMUsage(prompt_tokens=118, completion_tokens=13, total_tokens=131)
        assert response.provider_request_id is None

        sent = route.calls.last.request
        assert sent.headers["x-goog-api-key"] == "gemini-test-key"
        assert "key=" not in str(sent.url)

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_turn_conversion(self, httpx_client):
        fixture = load_fixture("gemini", "success_nonstream.json")
        route = respx.post(GEMINI_URL).respond(200, json=fixture)
        req = LLMRequest(
            model_name="test-model",
            messages=[
                Turn(role="system", content="Be brief."),
                Turn(role="user", content="Hi"),
                Turn(role="assistant", content="Hello!"),
                Turn(role="user", content="Fees?"),
            ],
            max_tokens=50,
            temperature=0.3,
        )

        await GeminiAdapter(httpx_client).generate(req, api_key="k", timeout_s=30)

        body = json.loads(route.calls.last.request.content)
        assert body["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
        assert body["generationConfig"] == {"maxOutputTokens": 50, "temperature": 0.3}

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_stream_success(self, httpx_client, llm_request):
        stream_content = load_fixture("gemini", "success_stream_chunks.txt")
        respx.post(GEMINI_STREAM_URL).respond(
            200, content=stream_content, headers={"content-type": "text/event-stream"}
        )

        chunks = await collect(
            GeminiAdapter(httpx_client).generate_stream(
                llm_request, api_key="gemini-test-key", timeout_s=30
            )
        )

        assert [c.delta_text for c in chunks[:-1]] == ["Tuition is ", "free in ", "Germany."]
        assert all(c.usage is None for c in chunks[:-1])
        assert chunks[-1].done is True
        assert chunks[-1].usage.total_tokens == 124

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_max_tokens_is_terminal(self, httpx_client, llm_request):
        event = {
            "candidates": [
                {"content": {"parts": [{"text": "Truncated"}]}, "finishReason": "MAX_TOKENS"}
            ]
        }
        respx.post(GEMINI_STREAM_URL).respond(200, content=f"data: {json.dumps(event)}\n\n")

        chunks = await collect(
            GeminiAdapter(httpx_client).generate_stream(llm_request, api_key="k", timeout_s=30)
        )

        assert [c.delta_text for c in chunks] == ["Truncated", ""]
        assert chunks[-1].done is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_stream_without_finish_reason(self, httpx_client, llm_request):
        event = {"candidates": [{"content": {"parts": [{"text": "Partial"}]}}]}
        respx.post(GEMINI_STREAM_URL).respond(200, content=f"data: {json.dumps(event)}\n\n")

        with pytest.raises(LLMError) as exc_info:
            await collect(
                GeminiAdapter(httpx_client).generate_stream(
                    llm_request, api_key="k", timeout_s=30
                )
            )

        assert exc_info.value.error_class == LLMErrorClass.PROVIDER_DOWN

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_missing_candidates(self, httpx_client, llm_request):
        respx.post(GEMINI_URL).respond(200, json={"candidates": []})

        with pytest.raises(LLMError):
            await GeminiAdapter(httpx_client).generate(llm_request, api_key="k", timeout_s=30)

    @pytest.mark.asyncio
    @respx.mock
    async def test_gemini_rate_limit_429(self, httpx_client, llm_request):
        fixture = load_fixture("gemini", "error_429.json")
        respx.post(GEMINI_URL).respond(429, json=fixture)

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await GeminiAdapter(httpx_client).generate(llm_request, api_key="k", timeout_s=30)

        assert exc_info.value.response.status_code == 429


# =============================================================================
# Error Classification
# =============================================================================


class TestClassifyProviderError:
    @pytest.mark.parametrize(
        ("status_code", "fixture", "expected"),
        [
            (401, "error_401.json", LLMErrorClass.INVALID_KEY),
            (429, "error_429.json", LLMErrorClass.RATE_LIMIT),
            (400, "error_context_too_large.json", LLMErrorClass.CONTEXT_TOO_LARGE),
        ],
    )
    def test_openai_fixtures(self, status_code, fixture, expected):
        body = load_fixture("openai", fixture)
        assert classify_provider_error("openai", status_code, body, None) == expected

    def test_openai_server_error(self):
        assert classify_provider_error("openai", 502, None, None) == LLMErrorClass.PROVIDER_DOWN

    def test_openai_model_not_found(self):
        body = {"error": {"code": "model_not_found", "message": "The model does not exist"}}
        assert (
            classify_provider_error("openai", 400, body, None)
            == LLMErrorClass.MODEL_NOT_AVAILABLE
        )

    def test_gemini_invalid_key_in_body(self):
        body = load_fixture("gemini", "error_400_invalid_key.json")
        assert classify_provider_error("gemini", 400, body, None) == LLMErrorClass.INVALID_KEY

    def test_gemini_resource_exhausted(self):
        body = load_fixture("gemini", "error_429.json")
        assert classify_provider_error("gemini", 429, body, None) == LLMErrorClass.RATE_LIMIT

    def test_timeout_exception(self):
        exc = httpx.ReadTimeout("read timed out")
        assert classify_provider_error("openai", None, None, exc) == LLMErrorClass.TIMEOUT

    def test_connect_error(self):
        exc = httpx.ConnectError("connection refused")
        assert classify_provider_error("gemini", None, None, exc) == LLMErrorClass.PROVIDER_DOWN

    def test_unknown_provider(self):
        assert classify_provider_error("other", 401, None, None) == LLMErrorClass.PROVIDER_DOWN


# =============================================================================
# Prompt Rendering
# =============================================================================


class TestPrompt:
    def test_render_prompt(self):
        turns = render_prompt("  Best universities in Spain?  ")

        assert turns == [
            Turn(role="system", content=SYSTEM_PROMPT),
            Turn(role="user", content="Best universities in Spain?"),
        ]

    def test_system_prompt_names_assistant(self):
        assert SYSTEM_PROMPT.startswith("You are EuroAssist.ai")

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Tuition Fees in Germany", "Tuition Fees in Germany"),
            ('"Scholarships in France"', "Scholarships in France"),
            ("\n\n  Erasmus Options \nextra line", "Erasmus Options"),
            ("", DEFAULT_TITLE),
            ('  ""  ', DEFAULT_TITLE),
        ],
    )
    def test_clean_title(self, raw, expected):
        assert clean_title(raw) == expected

    def test_clean_title_caps_length(self):
        assert len(clean_title("A" * 80)) == 50


class TestLLMChunk:
    def test_non_terminal_with_usage_raises(self):
        usage = LLMUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        with pytest.raises(ValueError, match="Non-terminal chunks"):
            LLMChunk(delta_text="hello", done=False, usage=usage)

    def test_terminal_chunk_can_have_usage(self):
        usage = LLMUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15)
        chunk = LLMChunk(delta_text="", done=True, usage=usage)
        assert chunk.usage == usage
