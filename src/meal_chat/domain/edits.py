"""Edit requests that can be applied to a meal.

Edits form a closed union discriminated by ``action``. The JSON form uses the
camelCase keys the chat clients send (``foodItem``, ``foodItemId``,
``recordedAt``, ``mealType``); the same form is stored with chat messages.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from meal_chat.domain.meals import MealType, Portion


class NewFoodItem(BaseModel):
    """Food item fields for an item that does not exist yet."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    portion: Portion
    calories: int = Field(ge=0)
    protein: float = Field(ge=0.0)
    fat: float = Field(ge=0.0)
    carbs: float = Field(ge=0.0)


class FoodItemPatch(BaseModel):
    """Partial food item fields; only supplied fields are changed."""

    model_config = ConfigDict(frozen=True)

    name: str | None = Field(default=None, min_length=1)
    portion: Portion | None = None
    calories: int | None = Field(default=None, ge=0)
    protein: float | None = Field(default=None, ge=0.0)
    fat: float | None = Field(default=None, ge=0.0)
    carbs: float | None = Field(default=None, ge=0.0)

    def changes(self) -> dict[str, object]:
        """Return the supplied fields keyed by food item attribute."""
        return self.model_dump(exclude_none=True)


class _EditModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class AddFoodItem(_EditModel):
    action: Literal["add"] = "add"
    food_item: NewFoodItem = Field(alias="foodItem")


class UpdateFoodItem(_EditModel):
    action: Literal["update"] = "update"
    food_item_id: str = Field(alias="foodItemId", min_length=1)
    food_item: FoodItemPatch = Field(alias="foodItem")


class RemoveFoodItem(_EditModel):
    action: Literal["remove"] = "remove"
    food_item_id: str = Field(alias="foodItemId", min_length=1)


class SetDateTime(_EditModel):
    action: Literal["set_datetime"] = "set_datetime"
    recorded_at: datetime = Field(alias="recordedAt")


class SetMealType(_EditModel):
    action: Literal["set_meal_type"] = "set_meal_type"
    meal_type: MealType = Field(alias="mealType")


Edit = Annotated[
    AddFoodItem | UpdateFoodItem | RemoveFoodItem | SetDateTime | SetMealType,
    Field(discriminator="action"),
]

_EDIT_LIST = TypeAdapter(list[Edit])


def edits_to_payload(edits: list[Edit]) -> list[dict[str, object]]:
    """Serialize edits to their JSON wire form."""
    return [
        edit.model_dump(mode="json", by_alias=True, exclude_none=True)
        for edit in edits
    ]


def edits_from_payload(payload: object) -> list[Edit]:
    """Parse edits from their JSON wire form.

    Raises pydantic.ValidationError if the payload is not a valid edit list.
    """
    return _EDIT_LIST.validate_python(payload)
