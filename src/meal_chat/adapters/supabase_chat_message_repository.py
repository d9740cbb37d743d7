"""Supabase repository for meal chat messages."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from meal_chat.domain.chat import ChatMessage
from meal_chat.domain.edits import edits_from_payload, edits_to_payload
from meal_chat.services.chat import ChatMessageRepository


@dataclass
class SupabaseChatMessageRepository(ChatMessageRepository):
    """Supabase implementation for chat messages."""

    client: Client

    def list_messages(self, meal_id: UUID) -> list[ChatMessage]:
        """Return messages for a meal ordered by creation time."""
        response = (
            self.client.table("meal_chat_messages")
            .select("id, meal_id, role, content, applied_changes, created_at")
            .eq("meal_id", str(meal_id))
            .order("created_at", desc=False)
            .execute()
        )
        return [_parse_message(row) for row in response.data or []]

    def create_message(self, message: ChatMessage) -> None:
        """Insert a chat message row."""
        response = (
            self.client.table("meal_chat_messages")
            .insert(
                {
                    "id": str(message.id),
                    "meal_id": str(message.meal_id),
                    "role": message.role,
                    "content": message.content,
                    "applied_changes": (
                        edits_to_payload(message.applied_changes)
                        if message.applied_changes
                        else None
                    ),
                    "created_at": message.created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create chat message")


def _parse_message(row: dict[str, object]) -> ChatMessage:
    return ChatMessage(
        id=UUID(row["id"]),
        meal_id=UUID(row["meal_id"]),
        role=row["role"],
        content=str(row.get("content") or ""),
        created_at=datetime.fromisoformat(row["created_at"]),
        applied_changes=edits_from_payload(row.get("applied_changes") or []),
    )
