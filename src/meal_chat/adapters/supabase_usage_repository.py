"""Supabase repository for AI usage records."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from meal_chat.domain.chat import TokenUsage
from meal_chat.services.usage import UsageRepository


@dataclass
class SupabaseUsageRepository(UsageRepository):
    """Supabase implementation for AI usage records."""

    client: Client

    def create_usage_record(
        self,
        user_id: UUID,
        feature_type: str,
        usage: TokenUsage,
        created_at: datetime,
    ) -> None:
        """Insert a usage record."""
        self.client.table("ai_usage_records").insert(
            {
                "user_id": str(user_id),
                "feature_type": feature_type,
                "prompt_tokens": usage.prompt_tokens,
                "completion_tokens": usage.completion_tokens,
                "total_tokens": usage.total_tokens,
                "created_at": created_at.isoformat(),
            }
        ).execute()

    def list_total_tokens(self, user_id: UUID, since: datetime | None) -> list[int]:
        """Return total token counts, optionally limited to recent records."""
        query = (
            self.client.table("ai_usage_records")
            .select("total_tokens")
            .eq("user_id", str(user_id))
        )
        if since is not None:
            query = query.gte("created_at", since.isoformat())
        response = query.execute()
        return [int(row.get("total_tokens") or 0) for row in response.data or []]
