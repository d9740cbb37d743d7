"""Shared test fixtures."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from meal_chat.config import Settings
from meal_chat.containers import AppContainer
from meal_chat.domain.chat import ChatMessage, GenerationStream, TokenUsage
from meal_chat.domain.meals import FoodItem, MealRecord, NutritionTotals
from meal_chat.services.chat import ChatMessageRepository, MealChatService
from meal_chat.services.generation import ChatGenerationService, ChatModelClient
from meal_chat.services.meals import MealEditService, MealRepository
from meal_chat.services.usage import UsageRepository, UsageService

USER_ID = UUID("11111111-1111-4111-8111-111111111111")
RECORDED_AT = datetime(2026, 1, 3, 12, 0, tzinfo=UTC)


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository for tests."""

    meals: dict[UUID, MealRecord] = field(default_factory=dict)
    items: dict[UUID, list[FoodItem]] = field(default_factory=dict)
    updated_at: list[datetime] = field(default_factory=list)

    def add_meal(
        self, items: list[FoodItem] | None = None, user_id: UUID = USER_ID
    ) -> MealRecord:
        meal = MealRecord(
            id=uuid4(),
            user_id=user_id,
            meal_type="lunch",
            content=", ".join(item.name for item in items or []),
            totals=NutritionTotals(0, 0.0, 0.0, 0.0),
            recorded_at=RECORDED_AT,
        )
        self.meals[meal.id] = meal
        self.items[meal.id] = list(items or [])
        return meal

    def get_meal(self, meal_id: UUID) -> MealRecord | None:
        return self.meals.get(meal_id)

    def list_food_items(self, meal_id: UUID) -> list[FoodItem]:
        return list(self.items.get(meal_id, []))

    def create_food_item(self, meal_id: UUID, item: FoodItem) -> None:
        self.items.setdefault(meal_id, []).append(item)

    def update_food_item(self, meal_id: UUID, item: FoodItem) -> None:
        self.items[meal_id] = [
            item if existing.id == item.id else existing
            for existing in self.items[meal_id]
        ]

    def delete_food_item(self, meal_id: UUID, food_item_id: str) -> None:
        self.items[meal_id] = [
            item for item in self.items[meal_id] if item.id != food_item_id
        ]

    def update_meal(self, meal: MealRecord, updated_at: datetime) -> None:
        self.meals[meal.id] = replace(meal)
        self.updated_at.append(updated_at)


@dataclass
class InMemoryChatMessageRepository(ChatMessageRepository):
    """In-memory chat message repository for tests."""

    messages: list[ChatMessage] = field(default_factory=list)
    fail_on_role: str | None = None

    def list_messages(self, meal_id: UUID) -> list[ChatMessage]:
        return sorted(
            (message for message in self.messages if message.meal_id == meal_id),
            key=lambda message: message.created_at,
        )

    def create_message(self, message: ChatMessage) -> None:
        if message.role == self.fail_on_role:
            raise RuntimeError("Failed to create chat message")
        self.messages.append(message)


@dataclass
class InMemoryUsageRepository(UsageRepository):
    """In-memory usage repository for tests."""

    records: list[dict[str, object]] = field(default_factory=list)

    def create_usage_record(
        self,
        user_id: UUID,
        feature_type: str,
        usage: TokenUsage,
        created_at: datetime,
    ) -> None:
        self.records.append(
            {
                "user_id": user_id,
                "feature_type": feature_type,
                "usage": usage,
                "created_at": created_at,
            }
        )

    def list_total_tokens(self, user_id: UUID, since: datetime | None) -> list[int]:
        return [
            record["usage"].total_tokens
            for record in self.records
            if record["user_id"] == user_id
            and (since is None or record["created_at"] >= since)
        ]


@dataclass
class FakeChatModelClient(ChatModelClient):
    """Fake chat client that replays scripted fragments."""

    fragments: list[str] = field(
        default_factory=lambda: ["了解しました。", "記録を確認します。"]
    )
    fail_after: int | None = None
    fail_on_start: bool = False
    stall_after: int | None = None
    usage: TokenUsage | None = field(
        default_factory=lambda: TokenUsage(
            prompt_tokens=120, completion_tokens=30, total_tokens=150
        )
    )
    usage_error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    async def stream_chat(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        messages: list[dict[str, str]],
    ) -> GenerationStream:
        self.calls.append(
            {"model": model, "instructions": instructions, "messages": messages}
        )
        if self.fail_on_start:
            raise RuntimeError("generation backend unavailable")
        return GenerationStream(fragments=self._fragments(), usage=self._usage)

    async def _fragments(self) -> AsyncIterator[str]:
        for index, fragment in enumerate(self.fragments):
            if self.stall_after is not None and index >= self.stall_after:
                await asyncio.Event().wait()
            if self.fail_after is not None and index >= self.fail_after:
                raise RuntimeError("stream interrupted")
            yield fragment
        if self.fail_after is not None and self.fail_after >= len(self.fragments):
            raise RuntimeError("stream interrupted")

    async def _usage(self) -> TokenUsage | None:
        if self.usage_error is not None:
            raise self.usage_error
        return self.usage


def make_food_item(
    name: str = "ご飯", calories: int = 250, protein: float = 4.5, **overrides
) -> FoodItem:
    fields: dict[str, object] = {
        "id": str(uuid4()),
        "name": name,
        "portion": "medium",
        "calories": calories,
        "protein": protein,
        "fat": 0.5,
        "carbs": 55.0,
    }
    fields.update(overrides)
    return FoodItem(**fields)


def build_chat_service(
    meal_repository: InMemoryMealRepository,
    message_repository: InMemoryChatMessageRepository,
    chat_client: FakeChatModelClient,
    usage_repository: InMemoryUsageRepository,
) -> MealChatService:
    return MealChatService(
        meal_service=MealEditService(meal_repository),
        message_repository=message_repository,
        generation_service=ChatGenerationService(
            client=chat_client, model="gpt-5.2", reasoning_effort="low", store=False
        ),
        usage_service=UsageService(usage_repository),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        openai_api_key="openai-key",
    )


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def message_repository() -> InMemoryChatMessageRepository:
    return InMemoryChatMessageRepository()


@pytest.fixture
def usage_repository() -> InMemoryUsageRepository:
    return InMemoryUsageRepository()


@pytest.fixture
def chat_client() -> FakeChatModelClient:
    return FakeChatModelClient()


@pytest.fixture
def container(
    settings: Settings,
    meal_repository: InMemoryMealRepository,
    message_repository: InMemoryChatMessageRepository,
    usage_repository: InMemoryUsageRepository,
    chat_client: FakeChatModelClient,
) -> AppContainer:
    chat_service = build_chat_service(
        meal_repository, message_repository, chat_client, usage_repository
    )

    async def close_resources() -> None:
        await chat_service.wait_for_background()

    return AppContainer(
        settings=settings,
        meal_service=chat_service.meal_service,
        chat_service=chat_service,
        usage_service=chat_service.usage_service,
        close_resources=close_resources,
    )
