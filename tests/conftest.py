"""Pytest configuration and fixtures for test suite.

Provides:
- ScriptedConnector: a provider that replays scripted passes
- Fake clock and sleep recorder for timing-sensitive components
- Orchestrator factory wired to the fakes
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from src.core.llm_connector import LLMConnector, LLMResponse, StreamChunk
from src.core.orchestrator import Orchestrator
from src.lib.config import RouterSettings
from src.lib.fallback_handler import RetryHandler, RetryPolicy
from src.lib.rate_limiter import RequestGuard
from src.models.response import TokenUsage


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


def as_chunk(item) -> StreamChunk:
    return item if isinstance(item, StreamChunk) else StreamChunk(text=item)


class ScriptedConnector(LLMConnector):
    """Connector that replays one scripted entry per provider call.

    Each entry is either an exception to raise or a list of fragments
    (plain strings or StreamChunk objects).
    """

    def __init__(self, passes):
        super().__init__({"provider": "scripted", "capabilities": ["streaming"]})
        self.passes = list(passes)
        self.calls = []

    def _next(self, engine, contents, config, mode):
        self.calls.append(
            {"engine": engine, "contents": list(contents), "config": config, "mode": mode}
        )
        if not self.passes:
            raise AssertionError("ScriptedConnector ran out of scripted passes")
        item = self.passes.pop(0)
        if isinstance(item, BaseException):
            raise item
        return [as_chunk(c) for c in item]

    async def generate(self, engine, contents, config):
        chunks = self._next(engine, contents, config, "blocking")
        usage = None
        citations = []
        for chunk in chunks:
            usage = chunk.usage or usage
            citations.extend(chunk.citations)
        return LLMResponse(
            text="".join(c.text for c in chunks),
            model_used=engine,
            usage=usage,
            citations=citations,
        )

    async def generate_stream(self, engine, contents, config):
        for chunk in self._next(engine, contents, config, "stream"):
            yield chunk

    async def check_health(self):
        return True


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async sleep replacement that records durations and advances a fake clock."""

    def __init__(self, clock: FakeClock | None = None):
        self.calls: list[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


def usage(total: int, input_tokens: int = 0, output_tokens: int = 0) -> TokenUsage:
    return TokenUsage(total_tokens=total, input_tokens=input_tokens, output_tokens=output_tokens)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sleeps(fake_clock):
    return SleepRecorder(fake_clock)


@pytest.fixture
def settings():
    return RouterSettings()


@pytest.fixture
def make_orchestrator(settings, fake_clock, sleeps):
    """Factory: orchestrator over a ScriptedConnector with fake timing."""

    def _make(passes):
        connector = ScriptedConnector(passes)
        guard = RequestGuard(
            min_request_gap=settings.min_request_gap,
            busy_wait=settings.busy_wait,
            clock=fake_clock,
            sleep=sleeps,
        )
        retry_handler = RetryHandler(
            RetryPolicy(
                max_attempts=settings.max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
            ),
            sleep=sleeps,
        )
        orchestrator = Orchestrator(
            connector, settings=settings, guard=guard, retry_handler=retry_handler
        )
        return orchestrator, connector

    return _make


@pytest.fixture
def make_connector():
    """Factory: ScriptedConnector over a list of scripted passes."""
    return ScriptedConnector
