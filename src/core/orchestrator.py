"""Main orchestrator for query routing and response generation."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from src.core.continuation import ContinuationLoop
from src.core.generation_config import build_generation_config, thinking_budget
from src.core.history import build_context_window, build_user_turn
from src.core.instruction_builder import build_system_instruction
from src.core.llm_connector import InvocationConfig, LLMConnector
from src.core.model_router import ModelRouter, route_prompt
from src.core.providers.factory import create_connector
from src.core.query_analyzer import is_product_query
from src.core.response_processor import ResponsePostProcessor
from src.core.stream_orchestrator import FragmentSink, StreamOrchestrator, deliver
from src.core.suggestions import generate_chat_title, generate_follow_up_suggestions
from src.lib.cancellation import CancellationToken
from src.lib.config import RouterSettings, load_settings
from src.lib.fallback_handler import RetryHandler, RetryPolicy
from src.lib.rate_limiter import RequestGuard
from src.models.model_config import EngineTier, RoutingDecision
from src.models.query import (
    AttachedDocument,
    ImageAttachment,
    Intent,
    Message,
    PromptRequest,
)
from src.models.response import FinalResult, RoutingMetadata

logger = logging.getLogger(__name__)

GROUNDED_INTENTS = (Intent.LIVE, Intent.RESEARCH)

RoutingCallback = Callable[[RoutingDecision], Awaitable[None] | None]


class Orchestrator:
    """Routes a prompt, streams the response and returns the cleaned result.

    Pipeline: guard -> retry -> continuation loop -> stream orchestrator ->
    provider. Fragments reach the caller as they arrive; the post-processed
    result is returned once every continuation pass has finished.
    """

    def __init__(
        self,
        connector: LLMConnector,
        settings: RouterSettings | None = None,
        guard: RequestGuard | None = None,
        retry_handler: RetryHandler | None = None,
        router: ModelRouter | None = None,
        post_processor: ResponsePostProcessor | None = None,
    ):
        """Initialize orchestrator.

        Args:
            connector: Provider connector
            settings: Router settings (defaults when omitted)
            guard: Request guard; pass a shared instance to space requests
                across orchestrators
            retry_handler: Retry handler for transient provider errors
            router: Model router
            post_processor: Response post-processor
        """
        self.connector = connector
        self.settings = settings or RouterSettings()
        self.guard = guard or RequestGuard(
            min_request_gap=self.settings.min_request_gap,
            busy_wait=self.settings.busy_wait,
        )
        self.retry_handler = retry_handler or RetryHandler(
            RetryPolicy(
                max_attempts=self.settings.max_attempts,
                base_delay=self.settings.retry_base_delay,
                max_delay=self.settings.retry_max_delay,
            )
        )
        self.router = router or ModelRouter(self.settings)
        self.post_processor = post_processor or ResponsePostProcessor()
        self.continuation = ContinuationLoop(
            StreamOrchestrator(connector),
            max_continuations=self.settings.max_continuations,
        )

    @classmethod
    def from_settings(cls, settings: RouterSettings | None = None) -> "Orchestrator":
        """Build an orchestrator with the connector named in the settings."""
        settings = settings or load_settings()
        return cls(create_connector(settings), settings)

    def route(self, prompt: str, has_image: bool = False, has_docs: bool = False) -> RoutingDecision:
        """Preview the routing decision for a prompt without generating."""
        return route_prompt(prompt, has_image, has_docs)

    async def generate(
        self,
        prompt: str,
        history: Sequence[Message | dict[str, Any]] = (),
        model_override: str | None = None,
        on_routing: RoutingCallback | None = None,
        image: ImageAttachment | None = None,
        documents: Sequence[AttachedDocument] | None = None,
        user_preference: str = "",
        on_fragment: FragmentSink | None = None,
        cancel: CancellationToken | None = None,
    ) -> FinalResult:
        """Generate a response for a prompt.

        Args:
            prompt: User prompt text
            history: Conversation history, oldest first
            model_override: Engine to force, or "auto"/None to route automatically
            on_routing: Called once with the routing decision before generation
            image: Optional inline image
            documents: Optional attached documents
            user_preference: Free-form text appended to the instructions
            on_fragment: Optional sink receiving text fragments as they stream
            cancel: Optional cancellation token

        Returns:
            FinalResult

        Raises:
            InvalidRequestError: If the prompt or documents are invalid
            ServiceOverloadedError: If transient provider errors persist
            ProviderError: For non-retryable provider failures
        """
        request = PromptRequest(
            prompt=prompt,
            history=tuple(history or ()),
            image=image,
            documents=tuple(documents or ()),
            model_override=model_override,
            user_preference=user_preference,
            cancel=cancel,
        )
        return await self.run(request, on_routing=on_routing, on_fragment=on_fragment)

    async def run(
        self,
        request: PromptRequest,
        on_routing: RoutingCallback | None = None,
        on_fragment: FragmentSink | None = None,
    ) -> FinalResult:
        """Generate a response for a validated request."""
        decision = self.router.route(request)
        if on_routing is not None:
            await deliver(on_routing, decision)

        tier, engine_model = self.router.resolve_engine(decision)
        product_query = is_product_query(request.prompt)
        generation = build_generation_config(decision.intent, decision.complexity)
        budget = thinking_budget(generation, tier)
        web_grounding = decision.intent in GROUNDED_INTENTS or product_query

        invocation = InvocationConfig(
            system_instruction=build_system_instruction(
                decision.intent,
                user_preference=request.user_preference,
                is_product_query=product_query,
                assistant_name=self.settings.assistant_name,
            ),
            temperature=generation.temperature,
            max_tokens=generation.max_tokens,
            thinking_budget=budget,
            web_grounding=web_grounding,
        )
        contents = build_context_window(
            request.history,
            decision.intent,
            char_limit=self.settings.history_message_char_limit,
        )
        contents.append(build_user_turn(request))

        logger.debug(
            f"Invoking {engine_model} ({tier.value}) with {len(contents)} turns",
            extra={
                "extra_fields": {
                    **generation.to_dict(),
                    "manual_override": decision.is_manual,
                    "thinking_budget": budget,
                    "web_grounding": web_grounding,
                }
            },
        )

        async def attempt():
            return await self.continuation.run(
                engine_model, contents, invocation, on_fragment, request.cancel
            )

        async with self.guard.slot():
            outcome = await self.retry_handler.execute(attempt)

        if outcome.cancelled:
            logger.info("Request cancelled, returning partial response")

        content = self.post_processor.process(outcome.text, decision.intent)
        routing = RoutingMetadata.from_decision(
            decision,
            engine_model=engine_model,
            engine_tier=tier.value,
            extended_reasoning=budget is not None,
            web_grounding=web_grounding,
            continuations=outcome.continuations,
            cancelled=outcome.cancelled,
        )

        logger.info(
            f"Generated {len(content)} chars via {engine_model}",
            extra={
                "extra_fields": {
                    "intent": decision.intent.value,
                    "continuations": outcome.continuations,
                    "total_tokens": outcome.usage.total_tokens,
                }
            },
        )

        return FinalResult(
            content=content,
            model=decision.target_engine,
            total_tokens=outcome.usage.total_tokens,
            input_tokens=outcome.usage.input_tokens,
            output_tokens=outcome.usage.output_tokens,
            citations=outcome.citations or None,
            routing=routing,
        )

    async def suggest_follow_ups(self, last_message: str, intent: Intent | None = None) -> list[str]:
        """Follow-up suggestions from the FAST tier model."""
        return await generate_follow_up_suggestions(
            self.connector, self.router.tier_models[EngineTier.FAST], last_message, intent
        )

    async def title_for(self, first_message: str) -> str:
        """Chat title from the FAST tier model."""
        return await generate_chat_title(
            self.connector, self.router.tier_models[EngineTier.FAST], first_message
        )

    async def check_health(self) -> bool:
        return await self.connector.check_health()

    async def close(self) -> None:
        await self.connector.close()
