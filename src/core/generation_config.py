"""Generation settings derived from (intent, complexity).

All functions here are pure: the same inputs always yield the same output.
Intents without a table entry (the reserved ``math`` intent) use the defaults.
"""

from src.models.model_config import EngineTier, GenerationConfig
from src.models.query import Intent

# Coding lowest (most deterministic), general highest.
TEMPERATURES = {
    Intent.CODING: 0.15,
    Intent.REASONING: 0.3,
    Intent.RESEARCH: 0.4,
    Intent.LIVE: 0.5,
    Intent.GENERAL: 0.6,
}
DEFAULT_TEMPERATURE = 0.5

# [min, max] output tokens. General keeps a low floor so short factual
# questions cannot produce long answers.
TOKEN_BOUNDS = {
    Intent.CODING: (4096, 12288),
    Intent.REASONING: (4096, 10240),
    Intent.RESEARCH: (3072, 8192),
    Intent.LIVE: (1024, 4096),
    Intent.GENERAL: (512, 4096),
}
DEFAULT_TOKEN_BOUNDS = (1024, 4096)

EXTENDED_REASONING_INTENTS = (Intent.CODING, Intent.REASONING)
EXTENDED_REASONING_THRESHOLD = 0.6

# Complexity above which an intent escalates to the PRO tier.
PRO_TIER_THRESHOLDS = {
    Intent.CODING: 0.5,
    Intent.REASONING: 0.6,
}

THINKING_BUDGET_RATIO = 0.4
MAX_THINKING_BUDGET = 4096


def token_bounds(intent: Intent) -> tuple[int, int]:
    return TOKEN_BOUNDS.get(intent, DEFAULT_TOKEN_BOUNDS)


def build_generation_config(intent: Intent, complexity: float) -> GenerationConfig:
    """Build sampling settings for a request.

    The token budget is interpolated linearly between the intent's bounds
    using complexity as the factor.

    Args:
        intent: Classified intent
        complexity: Complexity score in [0, 1]

    Returns:
        GenerationConfig
    """
    complexity = min(max(complexity, 0.0), 1.0)
    min_tokens, max_tokens = token_bounds(intent)

    return GenerationConfig(
        temperature=TEMPERATURES.get(intent, DEFAULT_TEMPERATURE),
        max_tokens=round(min_tokens + (max_tokens - min_tokens) * complexity),
        use_extended_reasoning=(
            intent in EXTENDED_REASONING_INTENTS and complexity > EXTENDED_REASONING_THRESHOLD
        ),
    )


def select_engine_tier(intent: Intent, complexity: float) -> EngineTier:
    """PRO for complex coding (> 0.5) or reasoning (> 0.6), FAST otherwise."""
    threshold = PRO_TIER_THRESHOLDS.get(intent)
    if threshold is not None and complexity > threshold:
        return EngineTier.PRO
    return EngineTier.FAST


def thinking_budget(config: GenerationConfig, tier: EngineTier) -> int | None:
    """Thinking token budget, or None when extended reasoning does not apply.

    Extended reasoning only takes effect on the PRO tier.
    """
    if not config.use_extended_reasoning or tier != EngineTier.PRO:
        return None
    return min(round(config.max_tokens * THINKING_BUDGET_RATIO), MAX_THINKING_BUDGET)
