"""Tests for the OpenAI provider"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from xyzulu.config.schema import ProviderCredentials
from xyzulu.provider.base import CodeContext, GenerationOptions
from xyzulu.provider.errors import (
    AuthenticationError,
    NetworkError,
    ProviderError,
    RateLimitError,
    ValidationError,
)
from xyzulu.provider.openai import OpenAIProvider

API_KEY = "sk-openai-test-key"
REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def completion(content="Hello!", model="gpt-4o-2024-08-06", usage=True):
    return SimpleNamespace(
        id="chatcmpl-1",
        model=model,
        system_fingerprint="fp_1",
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=5, completion_tokens=7, total_tokens=12) if usage else None,
    )


def status_error(error_class, status):
    return error_class(
        "api error",
        response=httpx.Response(status, request=REQUEST),
        body={"error": {"message": "api error"}},
    )


@pytest.fixture
def provider():
    return OpenAIProvider(ProviderCredentials(api_key=API_KEY, timeout=5000))


class TestConfig:
    def test_client_settings(self, provider):
        assert provider.client.api_key == API_KEY
        assert provider.client.max_retries == 0
        assert provider.client.timeout == 5.0

    @pytest.mark.parametrize(
        "key, expected",
        [
            ("sk-1234567890", True),
            ("sk-123", False),
            ("key-1234567890", False),
            ("", False),
        ],
    )
    def test_validate_config(self, key, expected):
        assert OpenAIProvider.validate_config(ProviderCredentials(api_key=key)) is expected

    def test_metadata(self, provider):
        assert provider.get_name() == "openai"
        assert provider.supported_models()[0] == "gpt-4o"
        assert provider.is_available()


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_normalizes_completion(self, provider):
        create = AsyncMock(return_value=completion())
        with patch.object(provider.client.chat.completions, "create", create):
            response = await provider.send_message(
                "Hi",
                GenerationOptions(model="gpt-4o", temperature=0.1, max_tokens=50, top_p=1.0, stop_sequences=["x"]),
            )

        assert response.content == "Hello!"
        assert response.provider == "openai"
        assert response.model == "gpt-4o-2024-08-06"
        assert response.finish_reason == "stop"
        assert response.usage.total == 12
        assert response.metadata == {"id": "chatcmpl-1", "system_fingerprint": "fp_1"}

        create.assert_awaited_once_with(
            model="gpt-4o",
            messages=[{"role": "user", "content": "Hi"}],
            temperature=0.1,
            max_tokens=50,
            top_p=1.0,
            stop=["x"],
        )

    @pytest.mark.asyncio
    async def test_default_model(self, provider):
        create = AsyncMock(return_value=completion(usage=False))
        with patch.object(provider.client.chat.completions, "create", create):
            response = await provider.send_message("Hi")

        assert create.await_args.kwargs["model"] == "gpt-4o"
        assert response.usage is None

    @pytest.mark.asyncio
    async def test_empty_choices_is_invalid_response(self, provider):
        empty = SimpleNamespace(id="x", model="gpt-4o", choices=[], usage=None)
        with patch.object(provider.client.chat.completions, "create", AsyncMock(return_value=empty)):
            with pytest.raises(ProviderError) as exc_info:
                await provider.send_message("Hi")

        assert exc_info.value.code == "INVALID_RESPONSE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "sdk_error, status, error_class",
        [
            (openai.AuthenticationError, 401, AuthenticationError),
            (openai.PermissionDeniedError, 403, AuthenticationError),
            (openai.RateLimitError, 429, RateLimitError),
            (openai.BadRequestError, 400, ValidationError),
            (openai.InternalServerError, 500, NetworkError),
        ],
    )
    async def test_status_errors(self, provider, sdk_error, status, error_class):
        create = AsyncMock(side_effect=status_error(sdk_error, status))
        with patch.object(provider.client.chat.completions, "create", create):
            with pytest.raises(error_class) as exc_info:
                await provider.send_message("Hi")

        assert exc_info.value.status_code == status
        assert exc_info.value.provider == "openai"

    @pytest.mark.asyncio
    async def test_unmapped_status(self, provider):
        create = AsyncMock(side_effect=status_error(openai.NotFoundError, 404))
        with patch.object(provider.client.chat.completions, "create", create):
            with pytest.raises(ProviderError) as exc_info:
                await provider.send_message("Hi")

        assert exc_info.value.code == "HTTP_404"

    @pytest.mark.asyncio
    async def test_connection_and_timeout_errors(self, provider):
        for error in [openai.APIConnectionError(request=REQUEST), openai.APITimeoutError(request=REQUEST)]:
            with patch.object(provider.client.chat.completions, "create", AsyncMock(side_effect=error)):
                with pytest.raises(NetworkError) as exc_info:
                    await provider.send_message("Hi")
            assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_unexpected_error_is_unknown(self, provider):
        create = AsyncMock(side_effect=RuntimeError("surprise"))
        with patch.object(provider.client.chat.completions, "create", create):
            with pytest.raises(ProviderError) as exc_info:
                await provider.send_message("Hi")

        assert exc_info.value.code == "UNKNOWN_ERROR"


def stream_chunk(content, finish_reason=None, model="gpt-4o"):
    return json.dumps({
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": model,
        "choices": [{"index": 0, "delta": {"content": content}, "finish_reason": finish_reason}],
    })


def sse(*events: str) -> bytes:
    return "".join(f"data: {e}\n\n" for e in events).encode()


class TrackingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed"""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


def wire_provider(response: httpx.Response, requests: list | None = None) -> OpenAIProvider:
    """Provider whose SDK client talks to a canned HTTP response"""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return response

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIProvider(ProviderCredentials(api_key=API_KEY), http_client=http_client)


class TestStreamResponse:
    @pytest.mark.asyncio
    async def test_streams_deltas(self):
        requests = []
        body = sse(
            stream_chunk("Hel"),
            json.dumps({
                "id": "chatcmpl-1",
                "object": "chat.completion.chunk",
                "created": 1700000000,
                "model": "gpt-4o",
                "choices": [],
            }),
            stream_chunk("lo", finish_reason="stop"),
            "[DONE]",
        )
        provider = wire_provider(
            httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body),
            requests,
        )

        chunks = [c async for c in provider.stream_response("Hi")]

        assert [c.content for c in chunks] == ["Hel", "lo"]
        assert chunks[-1].finish_reason == "stop"
        assert chunks[0].provider == "openai"
        assert chunks[0].metadata == {"id": "chatcmpl-1"}
        assert json.loads(requests[0].content)["stream"] is True

    @pytest.mark.asyncio
    async def test_skips_malformed_chunks(self):
        body = sse(
            stream_chunk("one"),
            "{not json",
            json.dumps({"unexpected": "shape"}),
            stream_chunk("two"),
            "[DONE]",
        )
        provider = wire_provider(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))

        chunks = [c async for c in provider.stream_response("Hi")]

        assert [c.content for c in chunks] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_stops_at_done(self):
        body = sse(stream_chunk("a"), "[DONE]", stream_chunk("ignored"))
        provider = wire_provider(httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body))

        chunks = [c async for c in provider.stream_response("Hi")]

        assert [c.content for c in chunks] == ["a"]

    @pytest.mark.asyncio
    async def test_early_exit_closes_stream(self):
        stream = TrackingStream([sse(stream_chunk("a")), sse(stream_chunk("b")), sse(stream_chunk("c"))])
        provider = wire_provider(
            httpx.Response(200, headers={"content-type": "text/event-stream"}, stream=stream)
        )

        chunks = provider.stream_response("Hi")
        first = await chunks.__anext__()
        await chunks.aclose()

        assert first.content == "a"
        assert stream.closed

    @pytest.mark.asyncio
    async def test_http_error_before_stream(self):
        provider = wire_provider(
            httpx.Response(401, json={"error": {"message": "bad key", "type": "invalid_request_error"}})
        )

        with pytest.raises(AuthenticationError) as exc_info:
            async for _ in provider.stream_response("Hi"):
                pass

        assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_generate_code_uses_low_temperature(provider):
    create = AsyncMock(return_value=completion("```python\nx = 1\n```"))
    with patch.object(provider.client.chat.completions, "create", create):
        result = await provider.generate_code("make x", CodeContext(file_path="x.py", existing_code="x = 0"))

    assert result.code == "x = 1"
    assert result.changes[0].operation == "modify"
    assert create.await_args.kwargs["temperature"] == 0.2
    assert create.await_args.kwargs["model"] == "gpt-4o"
