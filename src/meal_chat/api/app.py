"""FastAPI application factory."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse

from meal_chat.api.schemas import (
    ApplyChangesRequest,
    SendChatMessageRequest,
    chat_message_payload,
    edit_result_payload,
    food_item_payload,
    usage_payload,
)
from meal_chat.app_logging import configure_logging
from meal_chat.containers import AppContainer
from meal_chat.domain.edits import FoodItemPatch, NewFoodItem
from meal_chat.domain.meals import MealEditResult
from meal_chat.services.chat import ChatTurn

_MEAL_NOT_FOUND = "Meal not found"


async def require_user_id(x_user_id: str | None = Header(default=None)) -> UUID:
    """Return the caller's user id as forwarded by the auth layer."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    try:
        return UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED) from exc


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "path": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        logger.warning("Rejected request to %s: %s", request.url.path, errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Validation error",
                "code": "VALIDATION_ERROR",
                "errors": errors,
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/meals/{meal_id}/chat")
    async def chat_history(
        meal_id: UUID, request: Request, user_id: UUID = Depends(require_user_id)
    ) -> dict[str, object]:
        """Return the meal's chat history in chronological order."""
        state_container: AppContainer = request.app.state.container
        messages = state_container.chat_service.get_history(user_id, meal_id)
        if messages is None:
            raise HTTPException(status_code=404, detail=_MEAL_NOT_FOUND)
        return {"messages": [chat_message_payload(message) for message in messages]}

    @app.post("/meals/{meal_id}/chat")
    async def send_chat_message(
        meal_id: UUID,
        body: SendChatMessageRequest,
        request: Request,
        user_id: UUID = Depends(require_user_id),
    ) -> StreamingResponse:
        """Stream the assistant's reply as server-sent events."""
        state_container: AppContainer = request.app.state.container
        turn = await state_container.chat_service.start_turn(
            user_id, meal_id, body.message
        )
        if turn is None:
            raise HTTPException(status_code=404, detail=_MEAL_NOT_FOUND)
        return StreamingResponse(
            _sse_events(turn),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.post("/meals/{meal_id}/chat/apply")
    async def apply_changes(
        meal_id: UUID,
        body: ApplyChangesRequest,
        request: Request,
        user_id: UUID = Depends(require_user_id),
    ) -> dict[str, object]:
        """Apply an edit batch, typically the changes proposed in a chat turn."""
        state_container: AppContainer = request.app.state.container
        result = state_container.meal_service.apply_changes(
            user_id, meal_id, body.changes
        )
        return _edit_result_or_404(result)

    @app.get("/meals/{meal_id}/food-items")
    async def list_food_items(
        meal_id: UUID, request: Request, user_id: UUID = Depends(require_user_id)
    ) -> dict[str, object]:
        """Return the meal's food items."""
        state_container: AppContainer = request.app.state.container
        items = state_container.meal_service.list_food_items(user_id, meal_id)
        if items is None:
            raise HTTPException(status_code=404, detail=_MEAL_NOT_FOUND)
        return {"foodItems": [food_item_payload(item) for item in items]}

    @app.post("/meals/{meal_id}/food-items", status_code=status.HTTP_201_CREATED)
    async def add_food_item(
        meal_id: UUID,
        body: NewFoodItem,
        request: Request,
        user_id: UUID = Depends(require_user_id),
    ) -> dict[str, object]:
        """Add a food item to the meal."""
        state_container: AppContainer = request.app.state.container
        result = state_container.meal_service.add_food_item(user_id, meal_id, body)
        return _edit_result_or_404(result)

    @app.patch("/meals/{meal_id}/food-items/{food_item_id}")
    async def update_food_item(  # noqa: PLR0913
        meal_id: UUID,
        food_item_id: str,
        body: FoodItemPatch,
        request: Request,
        user_id: UUID = Depends(require_user_id),
    ) -> dict[str, object]:
        """Update supplied fields of a food item."""
        state_container: AppContainer = request.app.state.container
        result = state_container.meal_service.update_food_item(
            user_id, meal_id, food_item_id, body
        )
        return _edit_result_or_404(result)

    @app.delete("/meals/{meal_id}/food-items/{food_item_id}")
    async def delete_food_item(
        meal_id: UUID,
        food_item_id: str,
        request: Request,
        user_id: UUID = Depends(require_user_id),
    ) -> dict[str, object]:
        """Delete a food item from the meal."""
        state_container: AppContainer = request.app.state.container
        result = state_container.meal_service.delete_food_item(
            user_id, meal_id, food_item_id
        )
        return _edit_result_or_404(result)

    @app.get("/usage")
    async def usage_summary(
        request: Request, user_id: UUID = Depends(require_user_id)
    ) -> dict[str, object]:
        """Return the caller's token usage."""
        state_container: AppContainer = request.app.state.container
        return usage_payload(state_container.usage_service.get_summary(user_id))

    return app


async def _sse_events(turn: ChatTurn) -> AsyncIterator[str]:
    async for event in turn.events():
        yield f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"


def _edit_result_or_404(result: MealEditResult | None) -> dict[str, object]:
    if result is None:
        raise HTTPException(status_code=404, detail="Not found")
    return edit_result_payload(result)
