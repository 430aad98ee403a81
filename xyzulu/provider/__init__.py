"""LLM provider abstraction, registry and resolution"""

from .base import (
    CodeContext,
    CodeGenerationResult,
    FileChange,
    GenerationOptions,
    NormalizedResponse,
    Provider,
    TokenUsage,
)
from .errors import (
    AuthenticationError,
    LLMError,
    NetworkError,
    ProviderError,
    ProviderNotImplementedError,
    RateLimitError,
    ValidationError,
)
from .registry import ProviderRegistry
from .resolver import (
    MODEL_TO_PROVIDER,
    PROVIDERS,
    create_provider,
    register_configured_providers,
    resolve_provider,
)

__all__ = [
    "CodeContext",
    "CodeGenerationResult",
    "FileChange",
    "GenerationOptions",
    "NormalizedResponse",
    "Provider",
    "TokenUsage",
    "AuthenticationError",
    "LLMError",
    "NetworkError",
    "ProviderError",
    "ProviderNotImplementedError",
    "RateLimitError",
    "ValidationError",
    "ProviderRegistry",
    "MODEL_TO_PROVIDER",
    "PROVIDERS",
    "create_provider",
    "register_configured_providers",
    "resolve_provider",
]
