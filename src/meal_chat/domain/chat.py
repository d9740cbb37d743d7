"""Domain models for meal chat turns."""

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal
from uuid import UUID

from meal_chat.domain.edits import Edit, edits_to_payload
from meal_chat.domain.meals import FoodItem

ChatRole = Literal["user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """A persisted chat message attached to a meal."""

    id: UUID
    meal_id: UUID
    role: ChatRole
    content: str
    created_at: datetime
    applied_changes: list[Edit] = field(default_factory=list)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by the text-generation backend."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class GenerationRequest:
    """Everything the generation backend needs for one turn."""

    food_items: list[FoodItem]
    history: list[ChatMessage]
    user_message: str
    current_time: datetime


@dataclass(frozen=True)
class GenerationStream:
    """Lazy fragment sequence plus a usage report resolved after it drains."""

    fragments: AsyncIterator[str]
    usage: Callable[[], Awaitable[TokenUsage | None]]


@dataclass(frozen=True)
class TextEvent:
    """A generated fragment forwarded to the caller."""

    text: str

    def to_payload(self) -> dict[str, object]:
        return {"text": self.text}


@dataclass(frozen=True)
class DoneEvent:
    """Terminal event for a successful turn."""

    message_id: UUID
    changes: list[Edit]

    def to_payload(self) -> dict[str, object]:
        return {
            "done": True,
            "messageId": str(self.message_id),
            "changes": edits_to_payload(self.changes),
        }


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal event for a failed turn."""

    message: str

    def to_payload(self) -> dict[str, object]:
        return {"error": self.message}


StreamEvent = TextEvent | DoneEvent | ErrorEvent
