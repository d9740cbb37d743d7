"""Extraction of inline edit directives from generated chat text.

A directive looks like ``[CHANGE: {"action": "add", "food": {...}}]``. The
payload is located by brace counting from the first ``{`` after the marker.
Braces inside quoted JSON strings are not special-cased, so a food name
containing ``{`` or ``}`` will unbalance the scan.
"""

import json
import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass

from pydantic import ValidationError

from meal_chat.domain.edits import (
    AddFoodItem,
    Edit,
    FoodItemPatch,
    NewFoodItem,
    RemoveFoodItem,
    UpdateFoodItem,
)
from meal_chat.domain.meals import PORTIONS

logger = logging.getLogger(__name__)

DIRECTIVE_MARKER = "[CHANGE:"

_NUMERIC_FIELDS = ("calories", "protein", "fat", "carbs")
_EXTRA_BLANK_LINES = re.compile(r"\n(?:[ \t]*\n){2,}")


@dataclass(frozen=True)
class DirectiveSpan:
    """A complete directive: ``text[start:end]`` runs from marker to ``]``."""

    start: int
    end: int
    payload: str


def iter_directive_spans(text: str, start: int = 0) -> Iterator[DirectiveSpan]:
    """Yield every complete directive span at or after ``start``.

    Markers whose payload is unbalanced or not followed by ``]`` are skipped,
    and scanning resumes just after them.
    """
    position = start
    while True:
        marker_at = text.find(DIRECTIVE_MARKER, position)
        if marker_at == -1:
            return
        span = _match_span(text, marker_at)
        if span is None:
            position = marker_at + len(DIRECTIVE_MARKER)
            continue
        yield span
        position = span.end


def extract_edits(text: str) -> list[Edit]:
    """Return edits from all well-formed directives, in order of appearance."""
    edits: list[Edit] = []
    position = 0
    while True:
        marker_at = text.find(DIRECTIVE_MARKER, position)
        if marker_at == -1:
            return edits
        span = _match_span(text, marker_at)
        edit = _decode_payload(span.payload) if span else None
        if span is None or edit is None:
            position = marker_at + len(DIRECTIVE_MARKER)
            continue
        edits.append(edit)
        position = span.end


def filter_display_text(text: str) -> str:
    """Remove complete directives and tidy whitespace for display."""
    current = text
    while True:
        filtered = _filter_once(current)
        if filtered == current:
            return filtered
        current = filtered


def _filter_once(text: str) -> str:
    pieces: list[str] = []
    position = 0
    for span in iter_directive_spans(text):
        pieces.append(text[position : span.start])
        position = span.end
    pieces.append(text[position:])
    return _EXTRA_BLANK_LINES.sub("\n\n", "".join(pieces)).strip()


def _match_span(text: str, marker_at: int) -> DirectiveSpan | None:
    brace_at = text.find("{", marker_at + len(DIRECTIVE_MARKER))
    if brace_at == -1:
        return None
    depth = 0
    for index in range(brace_at, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                break
    else:
        return None
    payload_end = index + 1
    closing = payload_end
    while closing < len(text) and text[closing].isspace():
        closing += 1
    if closing >= len(text) or text[closing] != "]":
        return None
    return DirectiveSpan(
        start=marker_at, end=closing + 1, payload=text[brace_at:payload_end]
    )


def _decode_payload(payload: str) -> Edit | None:
    try:
        parsed = json.loads(payload)
    except (ValueError, RecursionError):
        logger.debug("Skipping directive with invalid JSON: %s", payload)
        return None
    if not isinstance(parsed, dict):
        return None
    try:
        return _build_edit(parsed)
    except (ValidationError, ValueError, TypeError):
        logger.debug("Skipping malformed directive: %s", payload)
        return None


def _build_edit(parsed: dict[str, object]) -> Edit | None:
    action = parsed.get("action")
    food = parsed.get("food")
    food_item_id = parsed.get("foodItemId")
    if action == "add" and isinstance(food, dict):
        return AddFoodItem(food_item=NewFoodItem(**_normalize_food(food, True)))
    if action == "remove" and _is_id(food_item_id):
        return RemoveFoodItem(food_item_id=str(food_item_id))
    if action == "update" and _is_id(food_item_id) and isinstance(food, dict):
        return UpdateFoodItem(
            food_item_id=str(food_item_id),
            food_item=FoodItemPatch(**_normalize_food(food, False)),
        )
    return None


def _normalize_food(food: dict[str, object], complete: bool) -> dict[str, object]:
    fields: dict[str, object] = {}
    if "name" in food:
        fields["name"] = _require_name(food["name"])
    elif complete:
        raise ValueError("add directive is missing a food name")
    if "portion" in food or complete:
        portion = food.get("portion")
        fields["portion"] = portion if portion in PORTIONS else "medium"
    for key in _NUMERIC_FIELDS:
        if key in food:
            value = _to_number(food[key])
        elif complete:
            value = 0.0
        else:
            continue
        fields[key] = _round_half_up(value) if key == "calories" else value
    return fields


def _require_name(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("food name must be a non-empty string")
    return value


def _to_number(value: object) -> float:
    if isinstance(value, bool):
        raise TypeError("booleans are not numeric values")
    if value is None:
        return 0.0
    if not isinstance(value, int | float | str):
        raise TypeError(f"unsupported numeric value: {value!r}")
    try:
        number = float(value)
    except OverflowError as exc:
        raise ValueError("numeric value is out of range") from exc
    if not math.isfinite(number):
        raise ValueError("numeric values must be finite")
    return number


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _is_id(value: object) -> bool:
    if isinstance(value, bool):
        return False
    return isinstance(value, str | int) and str(value) != ""
