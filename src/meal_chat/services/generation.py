"""Chat generation service backed by an LLM client."""

from dataclasses import dataclass
from typing import Protocol

from meal_chat.domain.chat import GenerationRequest, GenerationStream
from meal_chat.domain.meals import FoodItem
from meal_chat.services.editing import compute_totals

CHAT_INSTRUCTIONS = """あなたは食事記録のアシスタントです。
ユーザーが**既に食べた食事**を正確に記録する手助けをしてください。

## 重要な前提
- ユーザーは既に食べたものを記録しようとしています
- ユーザーが食べ物を伝えたら、それを食事記録に追加してください
- 「これを食べるべき」「これも追加したら」などの提案はしないでください
- ユーザーが明示的に栄養アドバイスを求めた場合のみアドバイスしてください

## 応答ルール
- ユーザーが食べ物を伝えたら、その栄養情報を推定して追加提案してください
- すべての変更は [CHANGE: {...}] 形式で出力してください
- 使用可能なアクション:
  - 食材追加: [CHANGE: {"action": "add", "food": {"name": "食材名", "portion": "medium", "calories": 100, "protein": 5.0, "fat": 2.0, "carbs": 10.0}}]
  - 食材削除: [CHANGE: {"action": "remove", "foodItemId": "削除する食材のid"}]
  - 食材更新: [CHANGE: {"action": "update", "foodItemId": "更新する食材のid", "food": {"portion": "small", "calories": 80}}]
- portionは必ず "small", "medium", "large" のいずれかを使用してください
- caloriesは整数で指定してください
- 日本語で応答してください

現在の日時: {current_time}"""  # noqa: E501

EMPTY_MEAL_CONTEXT = "(食材なし)"


class ChatModelClient(Protocol):
    """Interface for streaming chat completions."""

    async def stream_chat(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        messages: list[dict[str, str]],
    ) -> GenerationStream:
        """Start a streaming completion and return its fragments and usage."""


@dataclass
class ChatGenerationService:
    """Service that prepares chat prompts for the configured client."""

    client: ChatModelClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def invoke(self, request: GenerationRequest) -> GenerationStream:
        """Start generating the assistant reply for one turn."""
        instructions = CHAT_INSTRUCTIONS.replace(
            "{current_time}", request.current_time.isoformat()
        )
        meal_context = format_meal_context(request.food_items)
        messages = [
            {"role": message.role, "content": message.content}
            for message in request.history
        ]
        messages.append({"role": "user", "content": request.user_message})
        return await self.client.stream_chat(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            instructions=f"{instructions}\n\n現在の食事:\n{meal_context}",
            messages=messages,
        )


def format_meal_context(items: list[FoodItem]) -> str:
    """Describe the current meal, including item ids the model can reference."""
    if not items:
        return EMPTY_MEAL_CONTEXT
    lines = [
        f"- {item.name} ({item.portion}): {item.calories}kcal, "
        f"P{item.protein}g, F{item.fat}g, C{item.carbs}g [id: {item.id}]"
        for item in items
    ]
    totals = compute_totals(items)
    lines.append("")
    lines.append(
        f"合計: {totals.calories}kcal, タンパク質{totals.protein:.1f}g, "
        f"脂質{totals.fat:.1f}g, 炭水化物{totals.carbs:.1f}g"
    )
    return "\n".join(lines)
