"""Drives a single provider call and forwards fragments to the caller."""

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from src.core.llm_connector import ContentTurn, InvocationConfig, LLMConnector
from src.lib.cancellation import CancellationToken
from src.models.response import Citation, TokenUsage

logger = logging.getLogger(__name__)

FragmentSink = Callable[[str], Awaitable[None] | None]


@dataclass
class StreamState:
    """Mutable accumulator for one orchestration pass.

    Text is append-only, citations are de-duplicated by URI and usage is
    overwritten by each report (providers send cumulative totals).
    """

    parts: list[str] = field(default_factory=list)
    citations: list[Citation] = field(default_factory=list)
    usage: TokenUsage | None = None
    cancelled: bool = False
    fragments: int = 0

    @property
    def text(self) -> str:
        return "".join(self.parts)

    def append_text(self, text: str) -> None:
        self.parts.append(text)
        self.fragments += 1

    def add_citations(self, citations) -> None:
        seen = {c.uri for c in self.citations}
        for citation in citations:
            if citation.uri not in seen:
                seen.add(citation.uri)
                self.citations.append(citation)

    def update_usage(self, usage: TokenUsage | None) -> None:
        if usage is not None:
            self.usage = usage


async def deliver(sink: FragmentSink, text: str) -> None:
    """Call a sync or async sink."""
    result = sink(text)
    if inspect.isawaitable(result):
        await result


class StreamOrchestrator:
    """Runs one pass against the connector.

    With a sink, each fragment is forwarded before it is accumulated, so the
    caller sees text at the provider's cadence. Without a sink, one blocking
    call is made. Errors propagate unchanged.
    """

    def __init__(self, connector: LLMConnector):
        self.connector = connector

    async def run_pass(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
        on_fragment: FragmentSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> StreamState:
        """Execute one provider call.

        Args:
            engine: Concrete model id
            contents: Conversation turns
            config: Invocation settings
            on_fragment: Optional sink receiving each text fragment in order
            cancel: Optional cancellation token, checked between fragments

        Returns:
            StreamState with the accumulated text, citations and usage
        """
        state = StreamState()

        if cancel is not None and cancel.cancelled:
            state.cancelled = True
            return state

        if on_fragment is None:
            response = await self.connector.generate(engine, contents, config)
            state.append_text(response.text or "")
            state.add_citations(response.citations)
            state.update_usage(response.usage)
            return state

        stream = self.connector.generate_stream(engine, contents, config)
        try:
            async for chunk in stream:
                if cancel is not None and cancel.cancelled:
                    state.cancelled = True
                    logger.info(f"Stream cancelled after {state.fragments} fragments")
                    break

                if chunk.text:
                    await deliver(on_fragment, chunk.text)
                    state.append_text(chunk.text)
                state.add_citations(chunk.citations)
                state.update_usage(chunk.usage)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        # A cancel that arrives after the last fragment still counts.
        if cancel is not None and cancel.cancelled:
            state.cancelled = True

        return state
