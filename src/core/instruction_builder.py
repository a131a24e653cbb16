"""Composes the system instruction for one request."""

import logging
from datetime import datetime

from src.core import prompts
from src.models.query import Intent

logger = logging.getLogger(__name__)

DEFAULT_ASSISTANT_NAME = "Nexus AI"

# At most one addendum per intent. Live, general and math get none.
INTENT_ADDENDA = {
    Intent.CODING: prompts.CODING_ADDENDUM,
    Intent.REASONING: prompts.REASONING_ADDENDUM,
    Intent.RESEARCH: prompts.RESEARCH_ADDENDUM,
}


def clock_context(now: datetime) -> str:
    """Render the real-time context block for `now`."""
    return prompts.CLOCK_CONTEXT.format(
        date=now.strftime("%A, %B %d, %Y"),
        time=now.strftime("%H:%M %Z").strip(),
    )


def build_instruction_sections(
    intent: Intent,
    user_preference: str = "",
    is_product_query: bool = False,
    now: datetime | None = None,
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
) -> list[str]:
    """Build the ordered instruction sections.

    Order is fixed: core contract, intent addendum, product addendum,
    artifact addendum, clock context, user preference.

    Args:
        intent: Classified intent
        user_preference: Free-form caller text, appended verbatim when non-blank
        is_product_query: Result of the product detector
        now: Clock value for the context block (defaults to local now)
        assistant_name: Name used in the identity section

    Returns:
        List of instruction sections
    """
    sections = [prompts.CORE_CONTRACT.format(assistant_name=assistant_name)]

    addendum = INTENT_ADDENDA.get(intent)
    if addendum:
        sections.append(addendum)

    if is_product_query:
        sections.append(prompts.PRODUCT_ADDENDUM)

    sections.append(prompts.ARTIFACT_ADDENDUM)
    sections.append(clock_context(now or datetime.now().astimezone()))

    if user_preference and user_preference.strip():
        sections.append(f"{prompts.USER_PREFERENCE_HEADER}\n{user_preference}")

    return sections


def build_system_instruction(
    intent: Intent,
    user_preference: str = "",
    is_product_query: bool = False,
    now: datetime | None = None,
    assistant_name: str = DEFAULT_ASSISTANT_NAME,
) -> str:
    """Build the complete system instruction text.

    Deterministic for identical inputs (including `now`).
    """
    sections = build_instruction_sections(
        intent,
        user_preference=user_preference,
        is_product_query=is_product_query,
        now=now,
        assistant_name=assistant_name,
    )
    logger.debug(f"Built system instruction with {len(sections)} sections for {intent.value}")
    return "\n".join(sections)
