"""Supabase repository for meals and food items."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from meal_chat.domain.meals import FoodItem, MealRecord, NutritionTotals
from meal_chat.services.meals import MealRepository


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals and food items."""

    client: Client

    def get_meal(self, meal_id: UUID) -> MealRecord | None:
        """Return a meal row by id."""
        response = (
            self.client.table("meal_records")
            .select(
                "id, user_id, meal_type, content, calories, total_protein, "
                "total_fat, total_carbs, recorded_at"
            )
            .eq("id", str(meal_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return MealRecord(
            id=UUID(row["id"]),
            user_id=UUID(row["user_id"]),
            meal_type=row["meal_type"],
            content=str(row.get("content") or ""),
            totals=NutritionTotals(
                calories=int(row.get("calories") or 0),
                protein=float(row.get("total_protein") or 0.0),
                fat=float(row.get("total_fat") or 0.0),
                carbs=float(row.get("total_carbs") or 0.0),
            ),
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )

    def list_food_items(self, meal_id: UUID) -> list[FoodItem]:
        """Return food items for a meal in creation order."""
        response = (
            self.client.table("meal_food_items")
            .select("id, name, portion, calories, protein, fat, carbs")
            .eq("meal_id", str(meal_id))
            .order("created_at", desc=False)
            .execute()
        )
        return [_parse_food_item(row) for row in response.data or []]

    def create_food_item(self, meal_id: UUID, item: FoodItem) -> None:
        """Insert a food item row."""
        payload = _food_item_payload(item)
        payload["id"] = item.id
        payload["meal_id"] = str(meal_id)
        response = self.client.table("meal_food_items").insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create food item")

    def update_food_item(self, meal_id: UUID, item: FoodItem) -> None:
        """Overwrite a food item row."""
        self.client.table("meal_food_items").update(_food_item_payload(item)).eq(
            "id", item.id
        ).eq("meal_id", str(meal_id)).execute()

    def delete_food_item(self, meal_id: UUID, food_item_id: str) -> None:
        """Delete a food item row."""
        self.client.table("meal_food_items").delete().eq("id", food_item_id).eq(
            "meal_id", str(meal_id)
        ).execute()

    def update_meal(self, meal: MealRecord, updated_at: datetime) -> None:
        """Persist meal totals, content, meal type and recorded time."""
        self.client.table("meal_records").update(
            {
                "meal_type": meal.meal_type,
                "content": meal.content,
                "calories": meal.totals.calories,
                "total_protein": meal.totals.protein,
                "total_fat": meal.totals.fat,
                "total_carbs": meal.totals.carbs,
                "recorded_at": meal.recorded_at.isoformat(),
                "updated_at": updated_at.isoformat(),
            }
        ).eq("id", str(meal.id)).execute()


def _food_item_payload(item: FoodItem) -> dict[str, object]:
    return {
        "name": item.name,
        "portion": item.portion,
        "calories": item.calories,
        "protein": item.protein,
        "fat": item.fat,
        "carbs": item.carbs,
    }


def _parse_food_item(row: dict[str, object]) -> FoodItem:
    return FoodItem(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        portion=row.get("portion") or "medium",
        calories=int(row.get("calories") or 0),
        protein=float(row.get("protein") or 0.0),
        fat=float(row.get("fat") or 0.0),
        carbs=float(row.get("carbs") or 0.0),
    )
