"""Query model for user input representation."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from src.lib.cancellation import CancellationToken
from src.lib.validation import validate_documents, validate_prompt


class Intent(str, Enum):
    """Closed set of request categories. Exactly one is assigned per request."""

    REASONING = "reasoning"
    CODING = "coding"
    # Reserved: no classifier rule produces MATH; every table falls back to defaults for it.
    MATH = "math"
    LIVE = "live"
    RESEARCH = "research"
    GENERAL = "general"


class Role(str, Enum):
    """Conversation roles as stored by the external conversation store."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One turn of conversation history. Read-only view; never mutated here."""

    role: Role
    content: str
    citations: tuple[Any, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self):
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "citations", tuple(self.citations or ()))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from a conversation-store record.

        Args:
            data: Dict with 'role' and 'content', optional 'citations' and
                'timestamp' (epoch milliseconds or datetime)

        Returns:
            Message instance
        """
        timestamp = data.get("timestamp")
        if isinstance(timestamp, (int, float)):
            timestamp = datetime.fromtimestamp(timestamp / 1000, UTC)
        elif timestamp is None:
            timestamp = datetime.now(UTC)

        return cls(
            role=Role(data["role"]),
            content=data.get("content") or "",
            citations=tuple(data.get("citations") or ()),
            timestamp=timestamp,
        )


@dataclass(frozen=True)
class ImageAttachment:
    """Inline image supplied with the prompt."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class AttachedDocument:
    """Document whose text was extracted by the caller."""

    title: str
    content: str
    type: str = "text"


@dataclass(frozen=True)
class PromptRequest:
    """Immutable description of one generation request.

    Attributes:
        prompt: User prompt text (non-empty after trim)
        history: Conversation history, oldest first
        image: Optional inline image
        documents: Attached documents
        model_override: Engine family name to force, or "auto"/None for routing
        user_preference: Free-form text appended verbatim to the instructions
        cancel: Cooperative cancellation token
    """

    prompt: str
    history: tuple[Message, ...] = ()
    image: ImageAttachment | None = None
    documents: tuple[AttachedDocument, ...] = ()
    model_override: str | None = None
    user_preference: str = ""
    cancel: CancellationToken | None = None

    def __post_init__(self):
        validate_prompt(self.prompt)

        history = tuple(
            m if isinstance(m, Message) else Message.from_dict(m) for m in self.history or ()
        )
        object.__setattr__(self, "history", history)

        documents = tuple(self.documents or ())
        validate_documents(documents)
        object.__setattr__(self, "documents", documents)

        object.__setattr__(self, "user_preference", self.user_preference or "")

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @property
    def has_documents(self) -> bool:
        return len(self.documents) > 0

    @property
    def is_manual_override(self) -> bool:
        """True when the caller forced an engine instead of automatic routing."""
        return bool(self.model_override) and str(self.model_override).lower() != "auto"
