"""Provider abstraction for LLM APIs"""

import difflib
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, ClassVar, Literal

from xyzulu.config.schema import ProviderCredentials

from .errors import LLMError, normalize_error

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
CODE_TEMPERATURE = 0.2

_CODE_BLOCK_RE = re.compile(r"```[^\n`]*\n(.*?)```", re.DOTALL)


@dataclass
class GenerationOptions:
    """Per-request tuning; None means provider default"""
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    stream: bool | None = None
    stop_sequences: list[str] | None = None


@dataclass
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass
class NormalizedResponse:
    """Provider-agnostic result of a generation call"""
    content: str
    provider: str
    model: str
    usage: TokenUsage | None = None
    finish_reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class CodeContext:
    """Optional hints for code generation requests"""
    file_path: str | None = None
    language: str | None = None
    existing_code: str | None = None
    project_structure: list[str] = field(default_factory=list)
    requirements: str | None = None


@dataclass
class FileChange:
    path: str
    operation: Literal["create", "modify", "delete"]
    content: str
    diff: str | None = None


@dataclass
class CodeGenerationResult:
    code: str
    response: NormalizedResponse
    explanation: str | None = None
    changes: list[FileChange] = field(default_factory=list)


def build_code_prompt(prompt: str, context: CodeContext) -> str:
    """Prefix the raw prompt with every populated context field"""
    enhanced = prompt

    if context.project_structure:
        files = "\n".join(f"- {p}" for p in context.project_structure)
        enhanced = f"Project files:\n{files}\n\n{enhanced}"

    if context.file_path:
        enhanced = f"File: {context.file_path}\n\n{enhanced}"

    if context.language:
        enhanced = f"Language: {context.language}\n\n{enhanced}"

    if context.existing_code:
        fence = context.language or ""
        enhanced = f"Existing code:\n```{fence}\n{context.existing_code}\n```\n\n{enhanced}"

    if context.requirements:
        enhanced = f"Requirements: {context.requirements}\n\n{enhanced}"

    return enhanced


def extract_code(content: str) -> tuple[str, str | None]:
    """Return (code, explanation) from a model reply.

    The first fenced block wins. Without one, the whole trimmed reply is the
    code and there is no explanation.
    """
    match = _CODE_BLOCK_RE.search(content)
    if not match:
        return content.strip(), None

    code = match.group(1).strip()
    prose = (content[: match.start()] + content[match.end():]).strip()
    return code, prose or None


def make_diff(path: str, old: str, new: str) -> str:
    diff = difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(diff)


class Provider(ABC):
    """Base class for LLM providers"""

    name: ClassVar[str]
    SUPPORTED_MODELS: ClassVar[tuple[str, ...]] = ()
    DEFAULT_MODEL: ClassVar[str]

    def __init__(self, credentials: ProviderCredentials):
        # Credentials are captured for the lifetime of the instance
        self.credentials = credentials.model_copy(deep=True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    def get_name(self) -> str:
        return self.name

    def supported_models(self) -> list[str]:
        return list(self.SUPPORTED_MODELS)

    def is_available(self) -> bool:
        """True if the captured credentials pass the shape check"""
        return self.validate_config(self.credentials)

    @classmethod
    def validate_config(cls, credentials: ProviderCredentials) -> bool:
        """Format-check credentials without touching the network"""
        return credentials.is_configured()

    @property
    def timeout_seconds(self) -> float:
        return (self.credentials.timeout or DEFAULT_TIMEOUT_MS) / 1000

    @abstractmethod
    async def send_message(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> NormalizedResponse:
        """Send a prompt and return the complete response"""
        pass

    @abstractmethod
    def stream_response(
        self,
        prompt: str,
        options: GenerationOptions | None = None,
    ) -> AsyncIterator[NormalizedResponse]:
        """Stream partial responses as the vendor produces them"""
        pass

    async def generate_code(
        self,
        prompt: str,
        context: CodeContext | None = None,
        options: GenerationOptions | None = None,
    ) -> CodeGenerationResult:
        """Generate code for a prompt, annotated with the code context"""
        context = context or CodeContext()
        options = options or GenerationOptions()

        try:
            options = replace(
                options,
                model=options.model or self.DEFAULT_MODEL,
                temperature=CODE_TEMPERATURE if options.temperature is None else options.temperature,
                stream=False,
            )
            enhanced_prompt = build_code_prompt(prompt, context)
            logger.debug(f"Generating code with {self.name}/{options.model} for {context.file_path or '<no file>'}")

            response = await self.send_message(enhanced_prompt, options)
            code, explanation = extract_code(response.content)

            changes = []
            if context.file_path:
                if context.existing_code:
                    changes.append(FileChange(
                        path=context.file_path,
                        operation="modify",
                        content=code,
                        diff=make_diff(context.file_path, context.existing_code, code),
                    ))
                else:
                    changes.append(FileChange(
                        path=context.file_path,
                        operation="create",
                        content=code,
                    ))

            return CodeGenerationResult(
                code=code,
                explanation=explanation,
                changes=changes,
                response=response,
            )
        except LLMError:
            raise
        except Exception as e:
            raise normalize_error(self.name, e) from e
