"""Request models and response formatting for the meal chat API."""

from pydantic import BaseModel, Field

from meal_chat.domain.chat import ChatMessage
from meal_chat.domain.edits import Edit, edits_to_payload
from meal_chat.domain.meals import FoodItem, MealEditResult, NutritionTotals
from meal_chat.domain.usage import UsageSummary


class SendChatMessageRequest(BaseModel):
    """Body for sending a chat message."""

    message: str = Field(min_length=1, max_length=1000)


class ApplyChangesRequest(BaseModel):
    """Body for applying an edit batch directly."""

    changes: list[Edit]


def food_item_payload(item: FoodItem) -> dict[str, object]:
    return {
        "id": item.id,
        "name": item.name,
        "portion": item.portion,
        "calories": item.calories,
        "protein": item.protein,
        "fat": item.fat,
        "carbs": item.carbs,
    }


def totals_payload(totals: NutritionTotals) -> dict[str, object]:
    return {
        "calories": totals.calories,
        "protein": totals.protein,
        "fat": totals.fat,
        "carbs": totals.carbs,
    }


def edit_result_payload(result: MealEditResult) -> dict[str, object]:
    return {
        "foodItems": [food_item_payload(item) for item in result.food_items],
        "updatedTotals": totals_payload(result.totals),
        "recordedAt": result.recorded_at.isoformat(),
        "mealType": result.meal_type,
    }


def chat_message_payload(message: ChatMessage) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": str(message.id),
        "role": message.role,
        "content": message.content,
        "createdAt": message.created_at.isoformat(),
    }
    if message.applied_changes:
        payload["appliedChanges"] = edits_to_payload(message.applied_changes)
    return payload


def usage_payload(summary: UsageSummary) -> dict[str, object]:
    return {
        "totalTokens": summary.total_tokens,
        "monthlyTokens": summary.monthly_tokens,
    }
