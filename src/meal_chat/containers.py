"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_chat.adapters.openai_chat_client import OpenAIChatClient
from meal_chat.adapters.supabase_chat_message_repository import (
    SupabaseChatMessageRepository,
)
from meal_chat.adapters.supabase_meal_repository import SupabaseMealRepository
from meal_chat.adapters.supabase_usage_repository import SupabaseUsageRepository
from meal_chat.config import Settings
from meal_chat.services.chat import MealChatService
from meal_chat.services.generation import ChatGenerationService
from meal_chat.services.meals import MealEditService
from meal_chat.services.usage import UsageService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    meal_service: MealEditService
    chat_service: MealChatService
    usage_service: UsageService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    meal_service = MealEditService(SupabaseMealRepository(supabase_client))
    usage_service = UsageService(SupabaseUsageRepository(supabase_client))
    openai_client = OpenAIChatClient.create(resolved_settings.openai_api_key)
    generation_service = ChatGenerationService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    chat_service = MealChatService(
        meal_service=meal_service,
        message_repository=SupabaseChatMessageRepository(supabase_client),
        generation_service=generation_service,
        usage_service=usage_service,
    )

    async def close_resources() -> None:
        await chat_service.wait_for_background()
        await openai_client.client.close()

    return AppContainer(
        settings=resolved_settings,
        meal_service=meal_service,
        chat_service=chat_service,
        usage_service=usage_service,
        close_resources=close_resources,
    )
