"""Factory for creating the provider connector from settings."""

import logging

from src.core.llm_connector import LLMConnector
from src.core.providers.ollama_provider import OllamaProvider
from src.core.providers.openrouter_provider import OpenRouterProvider
from src.lib.config import RouterSettings

logger = logging.getLogger(__name__)


def create_connector(settings: RouterSettings) -> LLMConnector:
    """Create the connector named by ``settings.provider``.

    Args:
        settings: Router settings

    Returns:
        Configured LLMConnector

    Raises:
        ValueError: If the provider is unknown or OpenRouter has no API key
    """
    provider = settings.provider.lower()

    if provider == "openrouter":
        if not settings.openrouter_api_key:
            raise ValueError("OPENROUTER_API_KEY is required for the openrouter provider")
        logger.info(f"Using OpenRouter at {settings.openrouter_base_url}")
        return OpenRouterProvider(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.request_timeout,
        )

    if provider == "ollama":
        logger.info(f"Using Ollama at {settings.ollama_base_url}")
        return OllamaProvider(base_url=settings.ollama_base_url, timeout=settings.request_timeout)

    raise ValueError(f"Unknown provider: {settings.provider}")
