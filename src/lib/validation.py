"""Input validation for prompt requests."""

from collections.abc import Sequence
from typing import Any

from src.lib.errors import InvalidRequestError

MAX_PROMPT_LENGTH = 50_000
MAX_TITLE_LENGTH = 200


def validate_prompt(prompt: Any) -> str:
    """Validate prompt text.

    Args:
        prompt: Raw prompt value from the caller

    Returns:
        The prompt unchanged (validation does not rewrite user text)

    Raises:
        InvalidRequestError: If the prompt is not a string, empty after trim, or too long
    """
    if not isinstance(prompt, str):
        raise InvalidRequestError("Prompt must be a string", param="prompt")

    trimmed = prompt.strip()
    if not trimmed:
        raise InvalidRequestError("Prompt cannot be empty", param="prompt")

    if len(trimmed) > MAX_PROMPT_LENGTH:
        raise InvalidRequestError(
            f"Prompt is too long (max {MAX_PROMPT_LENGTH} characters)", param="prompt"
        )

    return prompt


def validate_documents(documents: Sequence[Any]) -> None:
    """Validate attached documents.

    Raises:
        InvalidRequestError: If a document has no title or its text is not a string
    """
    for index, doc in enumerate(documents):
        title = getattr(doc, "title", None)
        content = getattr(doc, "content", None)

        if not isinstance(title, str) or not title.strip():
            raise InvalidRequestError(
                f"Document {index} is missing a title", param=f"documents[{index}].title"
            )
        if len(title) > MAX_TITLE_LENGTH:
            raise InvalidRequestError(
                f"Document title is too long (max {MAX_TITLE_LENGTH} characters)",
                param=f"documents[{index}].title",
            )
        if not isinstance(content, str):
            raise InvalidRequestError(
                f"Document '{title}' has no extracted text", param=f"documents[{index}].content"
            )
