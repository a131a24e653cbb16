"""Configuration loader for router settings and environment variables."""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


@dataclass
class RouterSettings:
    """Runtime settings for the routing engine.

    The per-intent tables (temperatures, token bounds, history budgets) are
    code constants, not settings.
    """

    provider: str = "openrouter"
    fast_model: str = "google/gemini-2.0-flash-001"
    pro_model: str = "google/gemini-2.5-pro"
    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    ollama_base_url: str = "http://localhost:11434"
    request_timeout: float = 120.0
    max_attempts: int = 4
    retry_base_delay: float = 1.5
    retry_max_delay: float = 20.0
    min_request_gap: float = 0.1
    busy_wait: float = 0.3
    max_continuations: int = 5
    history_message_char_limit: int = 4000
    assistant_name: str = "Nexus AI"
    log_level: str = "INFO"


# yaml section -> {yaml key: settings field}
YAML_SECTIONS: dict[str, dict[str, str]] = {
    "provider": {
        "name": "provider",
        "openrouter_base_url": "openrouter_base_url",
        "ollama_base_url": "ollama_base_url",
        "request_timeout": "request_timeout",
    },
    "engines": {"fast_model": "fast_model", "pro_model": "pro_model"},
    "retry": {
        "max_attempts": "max_attempts",
        "base_delay": "retry_base_delay",
        "max_delay": "retry_max_delay",
    },
    "guard": {"min_request_gap": "min_request_gap", "busy_wait": "busy_wait"},
    "continuation": {"max_continuations": "max_continuations"},
    "history": {"message_char_limit": "history_message_char_limit"},
    "assistant": {"name": "assistant_name"},
    "logging": {"level": "log_level"},
}

# env var -> settings field
ENV_OVERRIDES: dict[str, str] = {
    "ROUTER_PROVIDER": "provider",
    "ROUTER_FAST_MODEL": "fast_model",
    "ROUTER_PRO_MODEL": "pro_model",
    "OPENROUTER_API_KEY": "openrouter_api_key",
    "OPENROUTER_BASE_URL": "openrouter_base_url",
    "OLLAMA_BASE_URL": "ollama_base_url",
    "ROUTER_REQUEST_TIMEOUT": "request_timeout",
    "ROUTER_MAX_ATTEMPTS": "max_attempts",
    "ROUTER_ASSISTANT_NAME": "assistant_name",
    "LOG_LEVEL": "log_level",
}


class ConfigLoader:
    """Loads router settings from YAML, .env and the process environment.

    Precedence: environment > YAML file > dataclass defaults.
    """

    def __init__(self, config_path: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_path: YAML settings file (default: ./config/router.yaml)
            env_file: Path to .env file (default: ./.env)
        """
        self.config_path = Path(config_path or "config/router.yaml")
        self.env_file = Path(env_file or ".env")

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment from {self.env_file}")
        else:
            logger.debug(f"Environment file not found: {self.env_file}")

        self._types = {f.name: f.type for f in fields(RouterSettings)}
        values = self._load_yaml()
        values.update(self._load_env_vars())
        self.settings = RouterSettings(**values)

    def _coerce(self, name: str, value: Any) -> Any:
        declared = self._types[name]
        if value is None:
            return None
        if declared is int or declared == "int":
            return int(value)
        if declared is float or declared == "float":
            return float(value)
        return str(value)

    def _load_yaml(self) -> dict[str, Any]:
        """Load settings from the YAML file."""
        if not self.config_path.exists():
            logger.warning(f"Router config not found: {self.config_path}, using defaults")
            return {}

        with open(self.config_path) as f:
            data = yaml.safe_load(f) or {}

        values: dict[str, Any] = {}
        for section, mapping in YAML_SECTIONS.items():
            section_data = data.get(section) or {}
            for key, field_name in mapping.items():
                if key in section_data:
                    values[field_name] = self._coerce(field_name, section_data[key])

        logger.info(f"Loaded {len(values)} router settings from {self.config_path}")
        return values

    def _load_env_vars(self) -> dict[str, Any]:
        """Load overrides from environment variables."""
        values: dict[str, Any] = {}
        for env_name, field_name in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = self._coerce(field_name, raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}") from e
        return values


def load_settings(config_path: str | None = None, env_file: str | None = None) -> RouterSettings:
    """Load router settings.

    Args:
        config_path: Optional YAML settings file
        env_file: Optional .env file

    Returns:
        RouterSettings with environment overrides applied
    """
    return ConfigLoader(config_path=config_path, env_file=env_file).settings
