"""Domain models for meals and their food items."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

Portion = Literal["small", "medium", "large"]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]

PORTIONS: tuple[Portion, ...] = ("small", "medium", "large")
MEAL_TYPES: tuple[MealType, ...] = ("breakfast", "lunch", "dinner", "snack")


@dataclass(frozen=True)
class FoodItem:
    """A single food item belonging to a meal."""

    id: str
    name: str
    portion: Portion
    calories: int
    protein: float
    fat: float
    carbs: float


@dataclass(frozen=True)
class NutritionTotals:
    """Totals summed over a meal's current food items."""

    calories: int
    protein: float
    fat: float
    carbs: float


@dataclass(frozen=True)
class MealRecord:
    """A recorded meal."""

    id: UUID
    user_id: UUID
    meal_type: MealType
    content: str
    totals: NutritionTotals
    recorded_at: datetime


@dataclass(frozen=True)
class MealEditResult:
    """State of a meal after a batch of edits was applied."""

    food_items: list[FoodItem]
    totals: NutritionTotals
    recorded_at: datetime
    meal_type: MealType
