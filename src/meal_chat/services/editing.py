"""Applies edit batches to a meal's food items."""

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import assert_never
from uuid import uuid4

from meal_chat.domain.edits import (
    AddFoodItem,
    Edit,
    RemoveFoodItem,
    SetDateTime,
    SetMealType,
    UpdateFoodItem,
)
from meal_chat.domain.meals import FoodItem, MealType, NutritionTotals


@dataclass
class MealDraft:
    """Mutable meal state that edits are applied to."""

    food_items: dict[str, FoodItem]
    recorded_at: datetime
    meal_type: MealType

    @classmethod
    def from_items(
        cls, items: Iterable[FoodItem], recorded_at: datetime, meal_type: MealType
    ) -> "MealDraft":
        """Build a draft keyed by food item id, preserving item order."""
        return cls(
            food_items={item.id: item for item in items},
            recorded_at=recorded_at,
            meal_type=meal_type,
        )


def _new_food_item_id() -> str:
    return str(uuid4())


@dataclass
class EditApplier:
    """Applies edits in order, then recomputes totals once."""

    id_factory: Callable[[], str] = _new_food_item_id

    def apply(self, draft: MealDraft, edits: Sequence[Edit]) -> NutritionTotals:
        """Apply ``edits`` to ``draft`` and return totals for the result.

        Updates and removals that reference an unknown id are ignored.
        """
        for edit in edits:
            self._apply_one(draft, edit)
        return compute_totals(draft.food_items.values())

    def _apply_one(self, draft: MealDraft, edit: Edit) -> None:
        match edit:
            case AddFoodItem(food_item=food):
                item_id = self.id_factory()
                draft.food_items[item_id] = FoodItem(id=item_id, **food.model_dump())
            case UpdateFoodItem(food_item_id=item_id, food_item=patch):
                current = draft.food_items.get(item_id)
                if current is not None:
                    draft.food_items[item_id] = replace(current, **patch.changes())
            case RemoveFoodItem(food_item_id=item_id):
                draft.food_items.pop(item_id, None)
            case SetDateTime(recorded_at=recorded_at):
                draft.recorded_at = recorded_at
            case SetMealType(meal_type=meal_type):
                draft.meal_type = meal_type
            case _:
                assert_never(edit)


def compute_totals(items: Iterable[FoodItem]) -> NutritionTotals:
    """Sum nutrition over items, rounding each macro once on the aggregate."""
    snapshot = list(items)
    return NutritionTotals(
        calories=sum(item.calories for item in snapshot),
        protein=round(math.fsum(item.protein for item in snapshot), 1),
        fat=round(math.fsum(item.fat for item in snapshot), 1),
        carbs=round(math.fsum(item.carbs for item in snapshot), 1),
    )
