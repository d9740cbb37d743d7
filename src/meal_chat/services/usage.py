"""AI usage accounting."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from meal_chat.domain.chat import TokenUsage
from meal_chat.domain.usage import UsageSummary

MEAL_CHAT_FEATURE = "meal_chat"


class UsageRepository(Protocol):
    """Persistence interface for AI usage records."""

    def create_usage_record(
        self,
        user_id: UUID,
        feature_type: str,
        usage: TokenUsage,
        created_at: datetime,
    ) -> None:
        """Insert a usage record."""

    def list_total_tokens(self, user_id: UUID, since: datetime | None) -> list[int]:
        """Return total token counts for records created at or after ``since``."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class UsageService:
    """Records and summarizes token usage."""

    repository: UsageRepository
    clock: Callable[[], datetime] = _utc_now

    def record_usage(self, user_id: UUID, feature_type: str, usage: TokenUsage) -> None:
        """Persist one usage record."""
        self.repository.create_usage_record(
            user_id=user_id,
            feature_type=feature_type,
            usage=usage,
            created_at=self.clock(),
        )

    def get_summary(self, user_id: UUID) -> UsageSummary:
        """Return all-time and current-month token totals."""
        now = self.clock()
        start_of_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        return UsageSummary(
            total_tokens=sum(self.repository.list_total_tokens(user_id, None)),
            monthly_tokens=sum(
                self.repository.list_total_tokens(user_id, start_of_month)
            ),
        )
