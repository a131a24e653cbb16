"""Unit tests for the history window and user turn assembly."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest

from src.core.history import (
    TRUNCATION_MARKER,
    build_context_window,
    build_user_turn,
    format_document,
    truncate_content,
)
from src.core.llm_connector import MODEL_ROLE, USER_ROLE
from src.models.query import (
    AttachedDocument,
    ImageAttachment,
    Intent,
    Message,
    PromptRequest,
    Role,
)

pytestmark = pytest.mark.unit


def conversation(n: int) -> list[Message]:
    return [
        Message(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=f"message {i}")
        for i in range(n)
    ]


@pytest.mark.parametrize(
    "intent,size",
    [
        (Intent.REASONING, 10),
        (Intent.CODING, 8),
        (Intent.RESEARCH, 8),
        (Intent.GENERAL, 6),
        (Intent.LIVE, 4),
        (Intent.MATH, 6),
    ],
)
def test_window_size_per_intent(intent, size):
    window = build_context_window(conversation(20), intent)
    assert len(window) == size


def test_window_keeps_most_recent():
    window = build_context_window(conversation(20), Intent.LIVE)
    assert [turn.text for turn in window] == [f"message {i}" for i in range(16, 20)]


def test_short_history_is_kept_whole():
    assert len(build_context_window(conversation(3), Intent.REASONING)) == 3


def test_roles_are_mapped():
    window = build_context_window(conversation(2), Intent.GENERAL)
    assert [turn.role for turn in window] == [USER_ROLE, MODEL_ROLE]


def test_history_is_not_modified():
    history = conversation(20)
    snapshot = list(history)

    build_context_window(history, Intent.LIVE)

    assert history == snapshot


def test_long_message_is_truncated():
    history = [Message(role=Role.USER, content="x" * 5000)]
    window = build_context_window(history, Intent.GENERAL)

    assert window[0].text == "x" * 4000 + TRUNCATION_MARKER


def test_truncate_content_keeps_short_text():
    assert truncate_content("short", char_limit=10) == "short"


def test_user_turn_part_order():
    request = PromptRequest(
        prompt="Summarize these",
        image=ImageAttachment(data=b"\x89PNG", mime_type="image/png"),
        documents=(
            AttachedDocument(title="a.txt", content="alpha"),
            AttachedDocument(title="b.txt", content="beta"),
        ),
    )
    turn = build_user_turn(request)

    assert turn.role == USER_ROLE
    assert turn.parts[0].text == format_document("a.txt", "alpha")
    assert turn.parts[1].text == format_document("b.txt", "beta")
    assert turn.parts[2].image.mime_type == "image/png"
    assert turn.parts[3].text == "Summarize these"


def test_document_format():
    assert format_document("notes", "hello") == "[ATTACHED DOCUMENT: notes]\n```\nhello\n```\n"
