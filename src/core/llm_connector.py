"""Base LLM connector abstraction for swappable provider interface."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from src.models.query import ImageAttachment
from src.models.response import Citation, TokenUsage

logger = logging.getLogger(__name__)

USER_ROLE = "user"
MODEL_ROLE = "model"


@dataclass(frozen=True)
class ContentPart:
    """One part of a turn: either text or an inline image."""

    text: str | None = None
    image: ImageAttachment | None = None


@dataclass(frozen=True)
class ContentTurn:
    """Provider-neutral conversation turn ("user" or "model")."""

    role: str
    parts: tuple[ContentPart, ...]

    @classmethod
    def from_text(cls, role: str, text: str) -> "ContentTurn":
        return cls(role=role, parts=(ContentPart(text=text),))

    @property
    def text(self) -> str:
        """All text parts joined, images skipped."""
        return "".join(p.text for p in self.parts if p.text is not None)

    @property
    def images(self) -> list[ImageAttachment]:
        return [p.image for p in self.parts if p.image is not None]


@dataclass(frozen=True)
class InvocationConfig:
    """Everything a provider needs besides the contents."""

    system_instruction: str
    temperature: float
    max_tokens: int
    thinking_budget: int | None = None
    web_grounding: bool = False


@dataclass(frozen=True)
class StreamChunk:
    """Incremental piece of a streamed response.

    `usage`, when present, is the provider's cumulative total so far.
    """

    text: str = ""
    usage: TokenUsage | None = None
    citations: tuple[Citation, ...] = ()


@dataclass
class LLMResponse:
    """Standardized one-shot LLM response."""

    text: str
    model_used: str
    usage: TokenUsage | None = None
    citations: list[Citation] = field(default_factory=list)
    finish_reason: str = "stop"  # "stop", "length", ...


class LLMConnector(ABC):
    """Capability interface every provider implements.

    A connector accepts (engine, contents, config) and returns either a
    one-shot response or an async sequence of chunks. Failures are raised as
    TransientProviderError / FatalProviderError where the provider can tell.
    """

    def __init__(self, provider_config: dict[str, Any]):
        """Initialize connector with provider configuration.

        Args:
            provider_config: Provider settings (name, capabilities, endpoints)
        """
        self.provider_config = provider_config
        self.provider = provider_config.get("provider", "unknown")
        logger.info(f"Initialized {self.provider} connector")

    @abstractmethod
    async def generate(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
    ) -> LLMResponse:
        """Generate a complete response.

        Args:
            engine: Concrete model identifier
            contents: Conversation turns, oldest first, current prompt last
            config: Invocation settings

        Returns:
            LLMResponse with text, usage and citations
        """

    @abstractmethod
    def generate_stream(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a response as it is produced.

        Yields:
            StreamChunk in provider order
        """

    @abstractmethod
    async def check_health(self) -> bool:
        """Check if the provider is reachable.

        Returns:
            True if healthy, False otherwise
        """

    async def close(self) -> None:
        """Release network resources."""

    def get_capabilities(self) -> list[str]:
        return self.provider_config.get("capabilities", [])

    def supports_capability(self, capability: str) -> bool:
        """Check if the provider supports a capability.

        Args:
            capability: Capability name (e.g., "streaming", "web_grounding")

        Returns:
            True if supported, False otherwise
        """
        return capability in self.get_capabilities()
