"""Model router: maps a request to an engine family and a concrete model."""

import logging

from src.core.generation_config import select_engine_tier
from src.core.query_analyzer import classify_intent, estimate_complexity
from src.lib.config import RouterSettings
from src.models.model_config import EngineFamily, EngineTier, RoutingDecision
from src.models.query import Intent, PromptRequest

logger = logging.getLogger(__name__)

MANUAL_OVERRIDE_REASON = "Manual Override"

# intent -> (engine family, reason, explanation, confidence)
ROUTING_TABLE: dict[Intent, tuple[EngineFamily, str, str, float]] = {
    Intent.LIVE: (
        EngineFamily.REAL_TIME,
        "Real-Time Intelligence",
        "Live web grounding active, fetching current data.",
        1.0,
    ),
    Intent.CODING: (
        EngineFamily.TECHNICAL,
        "Technical Precision",
        "Deep architecture core, optimized for code quality.",
        0.98,
    ),
    Intent.REASONING: (
        EngineFamily.DEEP_ANALYSIS,
        "Deep Analysis",
        "Extended reasoning engine, analytical depth maximized.",
        0.96,
    ),
    Intent.RESEARCH: (
        EngineFamily.RESEARCH,
        "Research & Discovery",
        "Research core with web grounding for verified facts.",
        0.95,
    ),
    Intent.GENERAL: (
        EngineFamily.BALANCED,
        "Balanced Intelligence",
        "Precision synthesis engine, adapting to your query.",
        0.95,
    ),
}


def normalize_engine_name(name: str) -> str:
    """Map an override to an EngineFamily value when it names one (by value or member name)."""
    lowered = name.strip().lower()
    for family in EngineFamily:
        if lowered in (family.value, family.name.lower()):
            return family.value
    return name.strip()


def route_prompt(prompt: str, has_image: bool = False, has_docs: bool = False) -> RoutingDecision:
    """Automatic routing: classify, estimate complexity, pick the engine family.

    Args:
        prompt: User prompt text
        has_image: Whether an image is attached
        has_docs: Whether documents are attached

    Returns:
        RoutingDecision
    """
    intent = classify_intent(prompt, has_image, has_docs)
    complexity = estimate_complexity(prompt, intent, has_docs)
    family, reason, explanation, confidence = ROUTING_TABLE.get(
        intent, ROUTING_TABLE[Intent.GENERAL]
    )

    return RoutingDecision(
        target_engine=family.value,
        intent=intent,
        complexity=complexity,
        confidence=confidence,
        reason=reason,
        explanation=explanation,
    )


def manual_route(
    engine: str, prompt: str, has_image: bool = False, has_docs: bool = False
) -> RoutingDecision:
    """Routing for a forced engine.

    Classification still runs so generation settings and instructions adapt
    to the prompt.
    """
    intent = classify_intent(prompt, has_image, has_docs)
    complexity = estimate_complexity(prompt, intent, has_docs)
    target = normalize_engine_name(engine)

    return RoutingDecision(
        target_engine=target,
        intent=intent,
        complexity=complexity,
        confidence=1.0,
        reason=MANUAL_OVERRIDE_REASON,
        explanation=f"Direct routing to {target}.",
    )


class ModelRouter:
    """Routes requests and resolves the concrete model for a decision."""

    def __init__(self, settings: RouterSettings | None = None):
        """Initialize model router.

        Args:
            settings: Router settings carrying the FAST/PRO model ids
        """
        self.settings = settings or RouterSettings()
        self.tier_models = {
            EngineTier.FAST: self.settings.fast_model,
            EngineTier.PRO: self.settings.pro_model,
        }

    def route(self, request: PromptRequest) -> RoutingDecision:
        """Route a request, honouring a manual override.

        Args:
            request: Prompt request

        Returns:
            RoutingDecision
        """
        if request.is_manual_override:
            decision = manual_route(
                request.model_override,
                request.prompt,
                request.has_image,
                request.has_documents,
            )
        else:
            decision = route_prompt(request.prompt, request.has_image, request.has_documents)

        logger.info(
            f"Routed to {decision.target_engine} ({decision.reason})",
            extra={"extra_fields": decision.to_dict()},
        )
        return decision

    def resolve_engine(self, decision: RoutingDecision) -> tuple[EngineTier, str]:
        """Pick the capability tier and concrete model for a decision.

        The tier depends only on intent and complexity, also for manual
        overrides.

        Returns:
            (tier, model id)
        """
        tier = select_engine_tier(decision.intent, decision.complexity)
        return tier, self.tier_models[tier]
