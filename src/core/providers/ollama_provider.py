"""Ollama provider implementation for local model hosting."""

import base64
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from src.core.llm_connector import (
    MODEL_ROLE,
    ContentTurn,
    InvocationConfig,
    LLMConnector,
    LLMResponse,
    StreamChunk,
)
from src.lib.errors import TransientProviderError, provider_error_from_status
from src.models.response import TokenUsage

logger = logging.getLogger(__name__)

CAPABILITIES = ["streaming", "vision"]


def parse_usage(data: dict[str, Any]) -> TokenUsage | None:
    """Token counts from a final Ollama message (prompt_eval_count / eval_count)."""
    if "prompt_eval_count" not in data and "eval_count" not in data:
        return None
    prompt_tokens = data.get("prompt_eval_count", 0)
    completion_tokens = data.get("eval_count", 0)
    return TokenUsage(
        total_tokens=prompt_tokens + completion_tokens,
        input_tokens=prompt_tokens,
        output_tokens=completion_tokens,
    )


class OllamaProvider(LLMConnector):
    """Ollama provider for local model inference. No web grounding."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Ollama provider.

        Args:
            base_url: Ollama server URL
            timeout: Request timeout in seconds
            client: Pre-built HTTP client (tests)
        """
        super().__init__({"provider": "ollama", "capabilities": CAPABILITIES})
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _build_payload(
        self, engine: str, contents: list[ContentTurn], config: InvocationConfig, stream: bool
    ) -> dict[str, Any]:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": config.system_instruction}
        ]
        for turn in contents:
            message: dict[str, Any] = {
                "role": "assistant" if turn.role == MODEL_ROLE else "user",
                "content": turn.text,
            }
            if turn.images:
                message["images"] = [
                    base64.b64encode(image.data).decode("ascii") for image in turn.images
                ]
            messages.append(message)

        if config.web_grounding and not self.supports_capability("web_grounding"):
            logger.debug("Web grounding requested but not supported by Ollama, ignoring")

        return {
            "model": engine,
            "messages": messages,
            "stream": stream,
            "options": {
                "temperature": config.temperature,
                "num_predict": config.max_tokens,
            },
        }

    def _map_error(self, e: httpx.HTTPError) -> Exception:
        if isinstance(e, httpx.HTTPStatusError):
            return provider_error_from_status(
                e.response.status_code, f"Ollama HTTP error: {e}", provider=self.provider
            )
        return TransientProviderError(f"Ollama unavailable: {e}", provider=self.provider)

    async def generate(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
    ) -> LLMResponse:
        """Generate response using Ollama.

        Args:
            engine: Local model name
            contents: Conversation turns
            config: Invocation settings

        Returns:
            LLMResponse with generated content
        """
        payload = self._build_payload(engine, contents, config, stream=False)
        try:
            response = await self.client.post(f"{self.base_url}/api/chat", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Ollama generation error: {e}")
            raise self._map_error(e) from e

        data = response.json()
        return LLMResponse(
            text=data.get("message", {}).get("content", ""),
            model_used=data.get("model", engine),
            usage=parse_usage(data),
            finish_reason=data.get("done_reason") or ("stop" if data.get("done") else "length"),
        )

    async def generate_stream(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a response from Ollama (newline-delimited JSON).

        Yields:
            StreamChunk per message fragment; the final chunk carries usage
        """
        payload = self._build_payload(engine, contents, config, stream=True)
        try:
            async with self.client.stream(
                "POST", f"{self.base_url}/api/chat", json=payload
            ) as response:
                response.raise_for_status()

                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    chunk = json.loads(line)

                    text = chunk.get("message", {}).get("content", "")
                    usage = parse_usage(chunk) if chunk.get("done") else None
                    if text or usage:
                        yield StreamChunk(text=text, usage=usage)

                    if chunk.get("done", False):
                        break
        except httpx.HTTPError as e:
            logger.error(f"Ollama streaming error: {e}")
            raise self._map_error(e) from e

    async def check_health(self) -> bool:
        """Check if the Ollama server is available.

        Returns:
            True if healthy, False otherwise
        """
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
