"""Unit tests for the model router."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from src.core.model_router import (
    MANUAL_OVERRIDE_REASON,
    ModelRouter,
    manual_route,
    normalize_engine_name,
    route_prompt,
)
from src.lib.config import RouterSettings
from src.models.model_config import EngineTier
from src.models.query import Intent, PromptRequest

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "prompt,engine,reason,confidence",
    [
        ("What is the capital of France?", "balanced", "Balanced Intelligence", 0.95),
        ("Fix this error in my function", "technical-precision", "Technical Precision", 0.98),
        ("What are the pros and cons of remote work", "deep-analysis", "Deep Analysis", 0.96),
        ("Tell me about the history of Rome", "grounded-research", "Research & Discovery", 0.95),
        ("What is the weather in Paris", "real-time", "Real-Time Intelligence", 1.0),
    ],
)
def test_route_prompt_table(prompt, engine, reason, confidence):
    decision = route_prompt(prompt)

    assert decision.target_engine == engine
    assert decision.reason == reason
    assert decision.confidence == confidence
    assert decision.explanation
    assert not decision.is_manual


def test_route_prompt_carries_complexity():
    decision = route_prompt("What is the capital of France?")

    assert decision.intent == Intent.GENERAL
    assert decision.complexity == 0.3


def test_manual_route():
    decision = manual_route("deep-analysis", "What is the capital of France?")

    assert decision.target_engine == "deep-analysis"
    assert decision.reason == MANUAL_OVERRIDE_REASON
    assert decision.confidence == 1.0
    assert decision.explanation == "Direct routing to deep-analysis."
    assert decision.is_manual
    # Classification still runs for generation settings.
    assert decision.intent == Intent.GENERAL


@pytest.mark.parametrize(
    "name,expected",
    [
        ("deep-analysis", "deep-analysis"),
        ("DEEP_ANALYSIS", "deep-analysis"),
        (" Technical-Precision ", "technical-precision"),
        ("custom-engine", "custom-engine"),
    ],
)
def test_normalize_engine_name(name, expected):
    assert normalize_engine_name(name) == expected


def test_decision_to_dict():
    data = route_prompt("What is the capital of France?").to_dict()

    assert data["intent"] == "general"
    assert data["target_engine"] == "balanced"


class TestModelRouter:
    @pytest.fixture
    def router(self):
        return ModelRouter(RouterSettings(fast_model="fast-m", pro_model="pro-m"))

    def test_auto_override_routes_automatically(self, router):
        decision = router.route(PromptRequest(prompt="Hello there", model_override="auto"))

        assert decision.target_engine == "balanced"
        assert not decision.is_manual

    def test_manual_override(self, router):
        decision = router.route(PromptRequest(prompt="Hello there", model_override="real-time"))

        assert decision.target_engine == "real-time"
        assert decision.is_manual

    def test_resolve_fast_tier(self, router):
        assert router.resolve_engine(route_prompt("Hello there")) == (EngineTier.FAST, "fast-m")

    def test_resolve_pro_tier(self, router):
        prompt = " ".join(["word"] * 60) + " implement a function"
        decision = route_prompt(prompt)

        assert decision.intent == Intent.CODING
        assert router.resolve_engine(decision) == (EngineTier.PRO, "pro-m")
