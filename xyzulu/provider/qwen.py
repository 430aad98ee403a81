"""Qwen provider implementation over the DashScope HTTP API"""

from typing import Any, AsyncIterator
import json
import logging
import re

import httpx

from xyzulu.config.schema import ProviderCredentials

from .base import GenerationOptions, NormalizedResponse, Provider, TokenUsage
from .errors import LLMError, ProviderError, error_from_status, normalize_error

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class QwenProvider(Provider):
    """Provider for Alibaba Qwen models served by DashScope"""

    name = "qwen"
    API_URL = "https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation"
    SUPPORTED_MODELS = (
        "qwen-turbo",
        "qwen-plus",
        "qwen-max",
        "qwen-max-longcontext",
    )
    DEFAULT_MODEL = "qwen-turbo"

    def __init__(
        self,
        credentials: ProviderCredentials,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(credentials)
        self.base_url = self.credentials.base_url or self.API_URL
        self._transport = transport

    @classmethod
    def validate_config(cls, credentials: ProviderCredentials) -> bool:
        if not credentials.is_configured():
            return False
        # DashScope keys are sk- prefixed or bare alphanumeric tokens
        return bool(_KEY_RE.match(credentials.api_key))

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport)

    def _get_headers(self, stream: bool = False) -> dict:
        """Get headers for API request"""
        headers = {
            "Authorization": f"Bearer {self.credentials.api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
            headers["X-DashScope-SSE"] = "enable"
        if self.credentials.custom_headers:
            headers.update(self.credentials.custom_headers)
        return headers

    def _format_request(self, prompt: str, options: GenerationOptions, stream: bool = False) -> dict:
        """Convert a prompt and options into a DashScope request body"""
        parameters: dict[str, Any] = {"result_format": "message"}

        if options.temperature is not None:
            parameters["temperature"] = options.temperature
        if options.max_tokens is not None:
            parameters["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            parameters["top_p"] = options.top_p
        if options.stop_sequences:
            parameters["stop"] = list(options.stop_sequences)
        if stream:
            parameters["incremental_output"] = True

        return {
            "model": options.model or self.DEFAULT_MODEL,
            "input": {
                "messages": [
                    {"role": "user", "content": prompt},
                ],
            },
            "parameters": parameters,
        }

    def _parse_response(self, data: Any, model: str) -> NormalizedResponse:
        """Convert a DashScope payload into a normalized response"""
        output = data.get("output") if isinstance(data, dict) else None
        choices = output.get("choices") if isinstance(output, dict) else None
        first = choices[0] if isinstance(choices, list) and choices else None
        message = first.get("message") if isinstance(first, dict) else None

        if not isinstance(message, dict):
            raise ProviderError(
                "Invalid response format from DashScope API",
                self.name,
                "INVALID_RESPONSE",
                metadata={"response": data},
            )

        usage = None
        raw_usage = output.get("usage") or data.get("usage")
        if isinstance(raw_usage, dict):
            usage = TokenUsage(
                prompt=raw_usage.get("input_tokens") or 0,
                completion=raw_usage.get("output_tokens") or 0,
                total=raw_usage.get("total_tokens") or 0,
            )

        metadata = {}
        if data.get("request_id"):
            metadata["request_id"] = data["request_id"]
        if data.get("code"):
            metadata["code"] = data["code"]

        return NormalizedResponse(
            content=message.get("content") or "",
            provider=self.name,
            model=model,
            usage=usage,
            finish_reason=first.get("finish_reason"),
            metadata=metadata,
        )

    def _http_error(self, response: httpx.Response) -> LLMError:
        """Normalize a non-success HTTP response"""
        try:
            details = response.json()
        except ValueError:
            details = response.text[:500]
        return error_from_status(self.name, response.status_code, details)

    async def send_message(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> NormalizedResponse:
        """Send a prompt to DashScope and wait for the full reply"""
        options = options or GenerationOptions()
        model = options.model or self.DEFAULT_MODEL
        body = self._format_request(prompt, options)

        logger.info(f"Making DashScope API call with model: {model}")

        try:
            async with self._client() as client:
                response = await client.post(self.base_url, headers=self._get_headers(), json=body)

            if not response.is_success:
                raise self._http_error(response)

            try:
                data = response.json()
            except ValueError as e:
                raise ProviderError(
                    "DashScope API returned a non-JSON body",
                    self.name,
                    "INVALID_RESPONSE",
                    response.status_code,
                    {"body": response.text[:500]},
                ) from e

            return self._parse_response(data, model)
        except LLMError:
            raise
        except Exception as e:
            raise normalize_error(self.name, e) from e

    async def stream_response(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> AsyncIterator[NormalizedResponse]:
        """Stream a response from DashScope using server-sent events"""
        options = options or GenerationOptions()
        model = options.model or self.DEFAULT_MODEL
        body = self._format_request(prompt, options, stream=True)

        logger.info(f"Making streaming DashScope API call with model: {model}")

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    self.base_url,
                    headers=self._get_headers(stream=True),
                    json=body,
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        raise self._http_error(response)

                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue

                        data = line[5:].strip()
                        if data == "[DONE]":
                            break

                        try:
                            chunk = self._parse_response(json.loads(data), model)
                        except (json.JSONDecodeError, LLMError):
                            logger.debug(f"Skipping malformed DashScope chunk: {data[:200]}")
                            continue

                        yield chunk
        except LLMError:
            raise
        except Exception as e:
            raise normalize_error(self.name, e) from e
