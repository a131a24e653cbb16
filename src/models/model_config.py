"""Engine, generation config and routing decision types."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.models.query import Intent


class EngineFamily(str, Enum):
    """Engine families the router chooses between."""

    BALANCED = "balanced"
    TECHNICAL = "technical-precision"
    DEEP_ANALYSIS = "deep-analysis"
    REAL_TIME = "real-time"
    RESEARCH = "grounded-research"


class EngineTier(str, Enum):
    """Capability tier of the concrete model behind an engine family."""

    FAST = "fast"
    PRO = "pro"


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling settings derived from (intent, complexity). Pure value object."""

    temperature: float
    max_tokens: int
    use_extended_reasoning: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "use_extended_reasoning": self.use_extended_reasoning,
        }


@dataclass(frozen=True)
class RoutingDecision:
    """Result of routing one request. Created once, attached to the final result."""

    target_engine: str
    intent: Intent
    complexity: float
    confidence: float
    reason: str
    explanation: str

    @property
    def is_manual(self) -> bool:
        return self.reason == "Manual Override"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Routing decision as dict
        """
        return {
            "target_engine": self.target_engine,
            "intent": self.intent.value,
            "complexity": self.complexity,
            "confidence": self.confidence,
            "reason": self.reason,
            "explanation": self.explanation,
        }
