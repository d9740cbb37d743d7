"""Meal editing service."""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from meal_chat.domain.edits import (
    AddFoodItem,
    Edit,
    FoodItemPatch,
    NewFoodItem,
    RemoveFoodItem,
    UpdateFoodItem,
)
from meal_chat.domain.meals import FoodItem, MealEditResult, MealRecord
from meal_chat.services.editing import EditApplier, MealDraft


class MealRepository(Protocol):
    """Persistence interface for meals and their food items."""

    def get_meal(self, meal_id: UUID) -> MealRecord | None:
        """Return a meal by id, if present."""

    def list_food_items(self, meal_id: UUID) -> list[FoodItem]:
        """Return food items for a meal in creation order."""

    def create_food_item(self, meal_id: UUID, item: FoodItem) -> None:
        """Insert a food item row."""

    def update_food_item(self, meal_id: UUID, item: FoodItem) -> None:
        """Overwrite a food item row."""

    def delete_food_item(self, meal_id: UUID, food_item_id: str) -> None:
        """Delete a food item row."""

    def update_meal(self, meal: MealRecord, updated_at: datetime) -> None:
        """Persist meal totals, content, meal type and recorded time."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MealEditService:
    """Applies edit batches to stored meals and keeps totals in sync."""

    repository: MealRepository
    applier: EditApplier = field(default_factory=EditApplier)
    clock: Callable[[], datetime] = _utc_now

    def get_meal(self, user_id: UUID, meal_id: UUID) -> MealRecord | None:
        """Return the meal if it exists and belongs to the user."""
        meal = self.repository.get_meal(meal_id)
        if meal is None or meal.user_id != user_id:
            return None
        return meal

    def list_food_items(self, user_id: UUID, meal_id: UUID) -> list[FoodItem] | None:
        """Return the meal's food items, or None if the meal is not accessible."""
        if self.get_meal(user_id, meal_id) is None:
            return None
        return self.repository.list_food_items(meal_id)

    def apply_changes(
        self, user_id: UUID, meal_id: UUID, edits: list[Edit]
    ) -> MealEditResult | None:
        """Apply an ordered edit batch and persist the resulting meal."""
        meal = self.get_meal(user_id, meal_id)
        if meal is None:
            return None
        before = {item.id: item for item in self.repository.list_food_items(meal_id)}
        draft = MealDraft.from_items(
            before.values(), recorded_at=meal.recorded_at, meal_type=meal.meal_type
        )
        totals = self.applier.apply(draft, edits)

        for item_id in before:
            if item_id not in draft.food_items:
                self.repository.delete_food_item(meal_id, item_id)
        for item_id, item in draft.food_items.items():
            previous = before.get(item_id)
            if previous is None:
                self.repository.create_food_item(meal_id, item)
            elif previous != item:
                self.repository.update_food_item(meal_id, item)

        food_items = list(draft.food_items.values())
        updated = replace(
            meal,
            meal_type=draft.meal_type,
            recorded_at=draft.recorded_at,
            totals=totals,
            content=", ".join(item.name for item in food_items),
        )
        self.repository.update_meal(updated, updated_at=self.clock())
        return MealEditResult(
            food_items=food_items,
            totals=totals,
            recorded_at=draft.recorded_at,
            meal_type=draft.meal_type,
        )

    def add_food_item(
        self, user_id: UUID, meal_id: UUID, food: NewFoodItem
    ) -> MealEditResult | None:
        """Add a single food item to a meal."""
        return self.apply_changes(user_id, meal_id, [AddFoodItem(food_item=food)])

    def update_food_item(
        self, user_id: UUID, meal_id: UUID, food_item_id: str, patch: FoodItemPatch
    ) -> MealEditResult | None:
        """Update a food item; None if the meal or the item does not exist."""
        if not self._has_food_item(user_id, meal_id, food_item_id):
            return None
        edit = UpdateFoodItem(food_item_id=food_item_id, food_item=patch)
        return self.apply_changes(user_id, meal_id, [edit])

    def delete_food_item(
        self, user_id: UUID, meal_id: UUID, food_item_id: str
    ) -> MealEditResult | None:
        """Delete a food item; None if the meal or the item does not exist."""
        if not self._has_food_item(user_id, meal_id, food_item_id):
            return None
        edit = RemoveFoodItem(food_item_id=food_item_id)
        return self.apply_changes(user_id, meal_id, [edit])

    def _has_food_item(self, user_id: UUID, meal_id: UUID, food_item_id: str) -> bool:
        items = self.list_food_items(user_id, meal_id)
        return items is not None and any(item.id == food_item_id for item in items)
