"""OpenRouter provider implementation (OpenAI-compatible API)."""

import base64
import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from src.core.llm_connector import (
    MODEL_ROLE,
    ContentTurn,
    InvocationConfig,
    LLMConnector,
    LLMResponse,
    StreamChunk,
)
from src.lib.errors import ProviderError, TransientProviderError, provider_error_from_status
from src.models.response import Citation, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
CAPABILITIES = ["streaming", "vision", "web_grounding", "extended_reasoning"]


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from an SDK object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def parse_citations(annotations: Any) -> list[Citation]:
    """Extract url_citation annotations (web plugin results)."""
    citations = []
    for annotation in annotations or []:
        if _get(annotation, "type") != "url_citation":
            continue
        detail = _get(annotation, "url_citation") or annotation
        url = _get(detail, "url")
        if url:
            citations.append(Citation(uri=url, title=_get(detail, "title") or ""))
    return citations


def parse_usage(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    prompt_tokens = _get(usage, "prompt_tokens") or 0
    completion_tokens = _get(usage, "completion_tokens") or 0
    return TokenUsage(
        total_tokens=_get(usage, "total_tokens") or prompt_tokens + completion_tokens,
        input_tokens=prompt_tokens,
        output_tokens=completion_tokens,
    )


class OpenRouterProvider(LLMConnector):
    """OpenRouter provider for hosted models."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        client: AsyncOpenAI | None = None,
    ):
        """Initialize OpenRouter provider.

        Args:
            api_key: OpenRouter API key
            base_url: API base URL
            timeout: Request timeout in seconds
            client: Pre-built client (tests)
        """
        super().__init__({"provider": "openrouter", "capabilities": CAPABILITIES})
        # Retries are owned by the router's RetryHandler.
        self.client = client or AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    def _to_messages(
        self, contents: list[ContentTurn], config: InvocationConfig
    ) -> list[dict[str, Any]]:
        """Convert turns to OpenAI chat format."""
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": config.system_instruction}
        ]

        for turn in contents:
            role = "assistant" if turn.role == MODEL_ROLE else "user"
            if not turn.images:
                messages.append({"role": role, "content": turn.text})
                continue

            parts = []
            for part in turn.parts:
                if part.image is not None:
                    encoded = base64.b64encode(part.image.data).decode("ascii")
                    parts.append(
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{part.image.mime_type};base64,{encoded}"},
                        }
                    )
                elif part.text:
                    parts.append({"type": "text", "text": part.text})
            messages.append({"role": role, "content": parts})

        return messages

    def _build_params(
        self, engine: str, contents: list[ContentTurn], config: InvocationConfig
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": engine,
            "messages": self._to_messages(contents, config),
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        }

        extra_body: dict[str, Any] = {}
        if config.web_grounding and self.supports_capability("web_grounding"):
            extra_body["plugins"] = [{"id": "web"}]
        if config.thinking_budget and self.supports_capability("extended_reasoning"):
            extra_body["reasoning"] = {"max_tokens": config.thinking_budget}
        if extra_body:
            params["extra_body"] = extra_body

        return params

    def _map_error(self, e: Exception) -> ProviderError:
        if isinstance(e, openai.APIStatusError):
            return provider_error_from_status(e.status_code, str(e), provider=self.provider)
        return TransientProviderError(str(e), provider=self.provider)

    async def generate(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
    ) -> LLMResponse:
        """Generate response using OpenRouter.

        Args:
            engine: OpenRouter model id
            contents: Conversation turns
            config: Invocation settings

        Returns:
            LLMResponse with generated content
        """
        params = self._build_params(engine, contents, config)
        try:
            response = await self.client.chat.completions.create(**params)
        except (openai.APIStatusError, openai.APIConnectionError) as e:
            logger.error(f"OpenRouter generation error: {e}")
            raise self._map_error(e) from e

        if not response.choices:
            return LLMResponse(text="", model_used=engine, usage=parse_usage(response.usage))

        choice = response.choices[0]
        return LLMResponse(
            text=choice.message.content or "",
            model_used=response.model or engine,
            usage=parse_usage(response.usage),
            citations=parse_citations(_get(choice.message, "annotations")),
            finish_reason=choice.finish_reason or "stop",
        )

    async def generate_stream(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a response from OpenRouter.

        Yields:
            StreamChunk per delta; the final chunk carries usage
        """
        params = self._build_params(engine, contents, config)
        params["stream"] = True
        params["stream_options"] = {"include_usage": True}

        try:
            stream = await self.client.chat.completions.create(**params)
            try:
                async for chunk in stream:
                    text = ""
                    citations: list[Citation] = []
                    if chunk.choices:
                        delta = chunk.choices[0].delta
                        text = _get(delta, "content") or ""
                        citations = parse_citations(_get(delta, "annotations"))

                    usage = parse_usage(_get(chunk, "usage"))
                    if text or usage or citations:
                        yield StreamChunk(text=text, usage=usage, citations=tuple(citations))
            finally:
                # Runs on early exit too (consumer aclose() on cancellation).
                await stream.close()
        except (openai.APIStatusError, openai.APIConnectionError) as e:
            logger.error(f"OpenRouter streaming error: {e}")
            raise self._map_error(e) from e

    async def check_health(self) -> bool:
        """Check if the OpenRouter API is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            await self.client.models.list()
            return True
        except openai.OpenAIError as e:
            logger.error(f"OpenRouter health check failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.close()
