"""OpenAI provider implementation"""

from typing import AsyncIterator
import json
import logging

import httpx
import openai
from openai.types.chat import ChatCompletionChunk
from pydantic import ValidationError as SchemaError

from xyzulu.config.schema import ProviderCredentials

from .base import GenerationOptions, NormalizedResponse, Provider, TokenUsage
from .errors import (
    LLMError,
    NetworkError,
    ProviderError,
    error_from_status,
    normalize_error,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(Provider):
    """Provider for OpenAI GPT models"""

    name = "openai"
    SUPPORTED_MODELS = (
        "gpt-4o",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    )
    DEFAULT_MODEL = "gpt-4o"

    def __init__(self, credentials: ProviderCredentials, http_client: httpx.AsyncClient | None = None):
        super().__init__(credentials)
        self.client = openai.AsyncOpenAI(
            api_key=self.credentials.api_key,
            base_url=self.credentials.base_url,
            timeout=self.timeout_seconds,
            max_retries=0,
            default_headers=self.credentials.custom_headers,
            http_client=http_client,
        )

    @classmethod
    def validate_config(cls, credentials: ProviderCredentials) -> bool:
        if not credentials.is_configured():
            return False
        return credentials.api_key.startswith("sk-") and len(credentials.api_key) > 10

    def _build_kwargs(self, prompt: str, options: GenerationOptions) -> dict:
        """Convert a prompt and options into chat completion arguments"""
        kwargs = {
            "model": options.model or self.DEFAULT_MODEL,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.temperature is not None:
            kwargs["temperature"] = options.temperature
        if options.max_tokens is not None:
            kwargs["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            kwargs["top_p"] = options.top_p
        if options.stop_sequences:
            kwargs["stop"] = list(options.stop_sequences)
        return kwargs

    def _convert_error(self, e: Exception) -> LLMError:
        """Map SDK exceptions onto the normalized taxonomy"""
        if isinstance(e, openai.APITimeoutError):
            return NetworkError(
                f'Request to provider "{self.name}" timed out',
                self.name,
                metadata={"timeout": self.timeout_seconds},
            )
        if isinstance(e, openai.APIConnectionError):
            return NetworkError(
                f'Network error talking to provider "{self.name}": {e.message}',
                self.name,
                metadata={"original_error": type(e).__name__},
            )
        if isinstance(e, openai.APIStatusError):
            return error_from_status(self.name, e.status_code, e.body)
        if isinstance(e, openai.APIResponseValidationError):
            return ProviderError(
                "Invalid response format from OpenAI API",
                self.name,
                "INVALID_RESPONSE",
                e.status_code,
            )
        return normalize_error(self.name, e)

    def _parse_completion(self, completion, model: str) -> NormalizedResponse:
        if not getattr(completion, "choices", None):
            raise ProviderError(
                "Invalid response format from OpenAI API",
                self.name,
                "INVALID_RESPONSE",
            )

        choice = completion.choices[0]
        usage = None
        if completion.usage:
            usage = TokenUsage(
                prompt=completion.usage.prompt_tokens or 0,
                completion=completion.usage.completion_tokens or 0,
                total=completion.usage.total_tokens or 0,
            )

        metadata = {"id": completion.id}
        if getattr(completion, "system_fingerprint", None):
            metadata["system_fingerprint"] = completion.system_fingerprint

        return NormalizedResponse(
            content=choice.message.content or "",
            provider=self.name,
            model=completion.model or model,
            usage=usage,
            finish_reason=choice.finish_reason,
            metadata=metadata,
        )

    async def send_message(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> NormalizedResponse:
        """Send a prompt to OpenAI and wait for the full reply"""
        options = options or GenerationOptions()
        kwargs = self._build_kwargs(prompt, options)

        logger.info(f"Making OpenAI API call with model: {kwargs['model']}")

        try:
            completion = await self.client.chat.completions.create(**kwargs)
            return self._parse_completion(completion, kwargs["model"])
        except LLMError:
            raise
        except Exception as e:
            raise self._convert_error(e) from e

    async def stream_response(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> AsyncIterator[NormalizedResponse]:
        """Stream a response from OpenAI.

        Server-sent events are decoded here rather than by the SDK stream so
        that one malformed chunk is skipped instead of ending the stream.
        """
        options = options or GenerationOptions()
        kwargs = self._build_kwargs(prompt, options)
        kwargs["stream"] = True

        logger.info(f"Making streaming OpenAI API call with model: {kwargs['model']}")

        try:
            async with self.client.chat.completions.with_streaming_response.create(**kwargs) as response:
                async for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue

                    data = line[5:].strip()
                    if data == "[DONE]":
                        break

                    try:
                        chunk = ChatCompletionChunk.model_validate(json.loads(data))
                    except (json.JSONDecodeError, SchemaError):
                        logger.debug(f"Skipping malformed OpenAI chunk: {data[:200]}")
                        continue

                    choice = chunk.choices[0] if chunk.choices else None
                    if choice is None or choice.delta is None:
                        continue

                    yield NormalizedResponse(
                        content=choice.delta.content or "",
                        provider=self.name,
                        model=chunk.model or kwargs["model"],
                        finish_reason=choice.finish_reason,
                        metadata={"id": chunk.id},
                    )
        except LLMError:
            raise
        except Exception as e:
            raise self._convert_error(e) from e
