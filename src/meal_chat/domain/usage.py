"""Domain models for AI usage accounting."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UsageSummary:
    """Token totals for a user."""

    total_tokens: int
    monthly_tokens: int
