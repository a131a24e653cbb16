"""Conversation history windowing and current-turn assembly."""

from collections.abc import Sequence

from src.core.llm_connector import MODEL_ROLE, USER_ROLE, ContentPart, ContentTurn
from src.models.query import Intent, Message, PromptRequest, Role

# Number of most recent messages kept per intent. Live lookups need the least context.
HISTORY_BUDGETS = {
    Intent.REASONING: 10,
    Intent.CODING: 8,
    Intent.RESEARCH: 8,
    Intent.GENERAL: 6,
    Intent.LIVE: 4,
}
DEFAULT_HISTORY_BUDGET = 6

MESSAGE_CHAR_LIMIT = 4000
TRUNCATION_MARKER = "\n\n[...truncated for context efficiency]"


def history_budget(intent: Intent) -> int:
    return HISTORY_BUDGETS.get(intent, DEFAULT_HISTORY_BUDGET)


def truncate_content(content: str, char_limit: int = MESSAGE_CHAR_LIMIT) -> str:
    if len(content) <= char_limit:
        return content
    return content[:char_limit] + TRUNCATION_MARKER


def build_context_window(
    history: Sequence[Message],
    intent: Intent,
    char_limit: int = MESSAGE_CHAR_LIMIT,
) -> list[ContentTurn]:
    """Bounded view of the conversation for the provider.

    Keeps the last N messages for the intent, truncates each to `char_limit`
    characters and maps the assistant role to the provider's model role.
    The input history is never modified.

    Args:
        history: Conversation history, oldest first
        intent: Classified intent
        char_limit: Per-message character cap

    Returns:
        Provider turns, oldest first
    """
    budget = history_budget(intent)
    recent = list(history)[-budget:] if budget > 0 else []

    return [
        ContentTurn.from_text(
            MODEL_ROLE if message.role == Role.ASSISTANT else USER_ROLE,
            truncate_content(message.content, char_limit),
        )
        for message in recent
    ]


def format_document(title: str, content: str) -> str:
    return f"[ATTACHED DOCUMENT: {title}]\n```\n{content}\n```\n"


def build_user_turn(request: PromptRequest) -> ContentTurn:
    """Current user turn: documents, then the image, then the prompt text."""
    parts = [ContentPart(text=format_document(doc.title, doc.content)) for doc in request.documents]
    if request.image is not None:
        parts.append(ContentPart(image=request.image))
    parts.append(ContentPart(text=request.prompt))
    return ContentTurn(role=USER_ROLE, parts=tuple(parts))
