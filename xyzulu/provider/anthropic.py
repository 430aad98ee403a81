"""Anthropic provider (not wired to the Messages API yet)"""

from typing import AsyncIterator

from xyzulu.config.schema import ProviderCredentials

from .base import (
    CodeContext,
    CodeGenerationResult,
    GenerationOptions,
    NormalizedResponse,
    Provider,
)
from .errors import ProviderNotImplementedError


class AnthropicProvider(Provider):
    """Provider for Anthropic Claude models.

    Configuration, key validation and model routing work, so the provider
    can be registered and resolved. Every data-plane call raises
    ProviderNotImplementedError.
    """

    name = "anthropic"
    API_URL = "https://api.anthropic.com/v1/messages"
    SUPPORTED_MODELS = (
        "claude-3-opus",
        "claude-3-5-sonnet",
        "claude-3-sonnet",
        "claude-3-haiku",
    )
    DEFAULT_MODEL = "claude-3-5-sonnet"

    @classmethod
    def validate_config(cls, credentials: ProviderCredentials) -> bool:
        if not credentials.is_configured():
            return False
        return credentials.api_key.startswith("sk-ant-") and len(credentials.api_key) > 15

    async def send_message(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> NormalizedResponse:
        raise ProviderNotImplementedError(self.name, "send_message")

    async def stream_response(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> AsyncIterator[NormalizedResponse]:
        raise ProviderNotImplementedError(self.name, "stream_response")
        yield  # pragma: no cover

    async def generate_code(
        self,
        prompt: str,
        context: CodeContext | None = None,
        options: GenerationOptions | None = None,
    ) -> CodeGenerationResult:
        raise ProviderNotImplementedError(self.name, "generate_code")
