"""Bounded re-invocation of responses that look cut off."""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from src.core.llm_connector import MODEL_ROLE, USER_ROLE, ContentTurn, InvocationConfig
from src.core.stream_orchestrator import FragmentSink, StreamOrchestrator
from src.lib.cancellation import CancellationToken
from src.models.response import Citation, TokenUsage

logger = logging.getLogger(__name__)

CONTINUATION_DIRECTIVE = "Continue from where you left off."
MAX_CONTINUATIONS = 5

TRUNCATION_MARKERS = re.compile(r"\[\.\.\.message truncated|-\s*$|\[Truncated\]|…\s*$")
TERMINAL_PUNCTUATION = re.compile(r"[.!?][\"')\]]*\s*$")
CLOSING_FENCE = re.compile(r"\n```\s*$")


def looks_truncated(text: str) -> bool:
    """Heuristic: does this pass look cut off?

    True when the text ends with a dash, an ellipsis or an explicit truncation
    marker, or when it is non-empty and ends without terminal punctuation.
    A closing code fence counts as a complete ending.

    Known false positive: short answers that legitimately omit punctuation
    ("42", a bare list item) are treated as truncated.
    """
    if TRUNCATION_MARKERS.search(text):
        return True
    if not text.strip():
        return False
    if CLOSING_FENCE.search(text):
        return False
    return TERMINAL_PUNCTUATION.search(text) is None


@dataclass
class ContinuationResult:
    """Raw output of the whole loop, before post-processing."""

    text: str
    citations: list[Citation] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    continuations: int = 0
    cancelled: bool = False


class ContinuationLoop:
    """Re-invokes the provider while the output looks truncated.

    Each continuation appends the partial output as a model turn and the
    continuation directive as a user turn. At most `max_continuations`
    re-invocations happen, whatever the predicate says.
    """

    def __init__(
        self,
        orchestrator: StreamOrchestrator,
        max_continuations: int = MAX_CONTINUATIONS,
        is_truncated: Callable[[str], bool] = looks_truncated,
    ):
        self.orchestrator = orchestrator
        self.max_continuations = max_continuations
        self.is_truncated = is_truncated

    async def run(
        self,
        engine: str,
        contents: list[ContentTurn],
        config: InvocationConfig,
        on_fragment: FragmentSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> ContinuationResult:
        """Generate until complete, cancelled or out of continuations.

        Args:
            engine: Concrete model id
            contents: Initial conversation turns (not modified)
            config: Invocation settings
            on_fragment: Optional fragment sink
            cancel: Optional cancellation token

        Returns:
            ContinuationResult with text concatenated across passes
        """
        turns = list(contents)
        result = ContinuationResult(text="")
        parts: list[str] = []
        seen_uris: set[str] = set()

        while True:
            state = await self.orchestrator.run_pass(engine, turns, config, on_fragment, cancel)

            parts.append(state.text)
            for citation in state.citations:
                if citation.uri not in seen_uris:
                    seen_uris.add(citation.uri)
                    result.citations.append(citation)
            if state.usage is not None:
                result.usage = result.usage + state.usage

            if state.cancelled:
                result.cancelled = True
                break
            if not self.is_truncated(state.text):
                break
            if result.continuations >= self.max_continuations:
                logger.warning(
                    f"Response still looks truncated after {result.continuations} continuations"
                )
                break

            result.continuations += 1
            logger.info(
                f"Response looks truncated, continuing "
                f"({result.continuations}/{self.max_continuations})"
            )
            turns = turns + [
                ContentTurn.from_text(MODEL_ROLE, state.text),
                ContentTurn.from_text(USER_ROLE, CONTINUATION_DIRECTIVE),
            ]

        result.text = "".join(parts)
        return result
