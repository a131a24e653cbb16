"""Follow-up suggestions and chat titles generated by a lightweight model call."""

import json
import logging
import re

from src.core.llm_connector import USER_ROLE, ContentTurn, InvocationConfig, LLMConnector
from src.lib.errors import ProviderError
from src.models.query import Intent

logger = logging.getLogger(__name__)

SUGGESTION_INPUT_LIMIT = 800
SUGGESTION_MAX_TOKENS = 256
MAX_SUGGESTIONS = 3

TITLE_INPUT_LIMIT = 1000
TITLE_MAX_TOKENS = 32
DEFAULT_TITLE = "New Session"

JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _parse_string_array(text: str) -> list[str]:
    """Parse a JSON array of strings, tolerating a surrounding code fence."""
    data = json.loads(JSON_FENCE.sub("", text.strip()))
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array, got {type(data).__name__}")
    return [item.strip() for item in data if isinstance(item, str) and item.strip()]


async def generate_follow_up_suggestions(
    connector: LLMConnector,
    engine: str,
    last_message: str,
    intent: Intent | None = None,
) -> list[str]:
    """Ask the model for up to three short follow-up questions.

    Args:
        connector: Provider connector
        engine: Model id (normally the FAST tier)
        last_message: Assistant message to base the suggestions on
        intent: Intent of the conversation turn, used as a hint

    Returns:
        Up to three suggestions; [] on provider failure or malformed output
    """
    clipped = (last_message or "")[:SUGGESTION_INPUT_LIMIT]
    topic = f" ({intent.value} topic)" if intent else ""
    prompt = (
        f'Suggest 3 brief follow-up questions{topic} for: "{clipped}". '
        "Return a JSON array of strings."
    )
    config = InvocationConfig(
        system_instruction="Respond with valid JSON only. No explanation.",
        temperature=0.6,
        max_tokens=SUGGESTION_MAX_TOKENS,
    )

    try:
        response = await connector.generate(
            engine, [ContentTurn.from_text(USER_ROLE, prompt)], config
        )
        return _parse_string_array(response.text)[:MAX_SUGGESTIONS]
    except ProviderError as e:
        logger.warning(f"Follow-up suggestion request failed: {e}")
        return []
    except ValueError as e:
        logger.warning(f"Could not parse follow-up suggestions: {e}")
        return []


async def generate_chat_title(connector: LLMConnector, engine: str, first_message: str) -> str:
    """Summarize the first message into a 3-5 word title.

    Returns:
        Title without quotes or trailing period, or "New Session"
    """
    clipped = (first_message or "")[:TITLE_INPUT_LIMIT]
    prompt = (
        "Summarize the following first message into a professional, concise 3 to 5 word "
        f'title for a chat conversation: "{clipped}". Return ONLY the title text. '
        "Do not use quotes or periods."
    )
    config = InvocationConfig(
        system_instruction="You write short, professional chat titles.",
        temperature=0.3,
        max_tokens=TITLE_MAX_TOKENS,
    )

    try:
        response = await connector.generate(
            engine, [ContentTurn.from_text(USER_ROLE, prompt)], config
        )
    except ProviderError as e:
        logger.warning(f"Chat title request failed: {e}")
        return DEFAULT_TITLE

    title = re.sub(r"['\"]", "", (response.text or "").strip())
    title = re.sub(r"\.$", "", title).strip()
    return title or DEFAULT_TITLE
