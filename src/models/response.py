"""Response models returned to the caller (Pydantic schemas)."""

from typing import Any

from pydantic import BaseModel, Field

from src.models.model_config import RoutingDecision


class Citation(BaseModel):
    """Grounding source reported by the provider."""

    uri: str
    title: str = ""
    kind: str = "web"  # "web" or "maps"


class TokenUsage(BaseModel):
    """Token counters as reported by the provider."""

    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            total_tokens=self.total_tokens + other.total_tokens,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class RoutingMetadata(BaseModel):
    """Routing decision plus what was actually invoked."""

    target_engine: str
    intent: str
    complexity: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str
    explanation: str
    engine_model: str
    engine_tier: str
    extended_reasoning: bool = False
    web_grounding: bool = False
    continuations: int = 0
    cancelled: bool = False

    @classmethod
    def from_decision(cls, decision: RoutingDecision, **extra: Any) -> "RoutingMetadata":
        return cls(**decision.to_dict(), **extra)


class FinalResult(BaseModel):
    """Final artifact returned after the whole continuation loop completes."""

    content: str
    model: str
    total_tokens: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    citations: list[Citation] | None = None
    routing: RoutingMetadata
