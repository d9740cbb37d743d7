"""Conversational meal editing: one chat turn from user message to reply."""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol
from uuid import UUID, uuid4

from meal_chat.domain.chat import (
    ChatMessage,
    DoneEvent,
    ErrorEvent,
    GenerationRequest,
    GenerationStream,
    StreamEvent,
    TextEvent,
)
from meal_chat.domain.edits import Edit
from meal_chat.services.directives import extract_edits, filter_display_text
from meal_chat.services.generation import ChatGenerationService
from meal_chat.services.meals import MealEditService
from meal_chat.services.usage import MEAL_CHAT_FEATURE, UsageService

logger = logging.getLogger(__name__)

CHAT_ERROR_MESSAGE = "An error occurred while generating the reply."


class ChatMessageRepository(Protocol):
    """Persistence interface for meal chat messages."""

    def list_messages(self, meal_id: UUID) -> list[ChatMessage]:
        """Return messages for a meal ordered by creation time."""

    def create_message(self, message: ChatMessage) -> None:
        """Insert a chat message row."""


class TurnState(StrEnum):
    """Lifecycle of a chat turn."""

    AWAITING_GENERATION = "awaiting_generation"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class ChatTurn:
    """Handle for a running chat turn.

    Events are buffered, so a caller that stops reading does not stall the
    turn; the reply is still persisted once generation finishes.
    """

    meal_id: UUID
    user_message_id: UUID
    state: TurnState = TurnState.AWAITING_GENERATION
    assistant_message_id: UUID | None = None
    changes: list[Edit] = field(default_factory=list)
    fragments: list[str] = field(default_factory=list)
    _queue: asyncio.Queue[StreamEvent | None] = field(
        default_factory=asyncio.Queue, repr=False
    )
    _task: asyncio.Task[None] | None = field(default=None, repr=False)
    _finished: bool = field(default=False, repr=False)

    @property
    def finished(self) -> bool:
        """Whether the terminal event has been queued."""
        return self._finished

    @property
    def full_text(self) -> str:
        """Text generated so far."""
        return "".join(self.fragments)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield fragment events followed by exactly one terminal event."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def wait(self) -> None:
        """Wait until the turn, including usage accounting, has finished."""
        if self._task is not None:
            await self._task

    def _emit(self, event: StreamEvent) -> None:
        self._queue.put_nowait(event)

    def _finish(self, event: DoneEvent | ErrorEvent) -> None:
        self._finished = True
        self._queue.put_nowait(event)
        self._queue.put_nowait(None)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MealChatService:
    """Runs chat turns that propose edits to a meal."""

    meal_service: MealEditService
    message_repository: ChatMessageRepository
    generation_service: ChatGenerationService
    usage_service: UsageService
    clock: Callable[[], datetime] = _utc_now
    _background_tasks: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    def get_history(self, user_id: UUID, meal_id: UUID) -> list[ChatMessage] | None:
        """Return the meal's chat history, or None if the meal is not accessible."""
        if self.meal_service.get_meal(user_id, meal_id) is None:
            return None
        return self.message_repository.list_messages(meal_id)

    async def start_turn(
        self, user_id: UUID, meal_id: UUID, message: str
    ) -> ChatTurn | None:
        """Persist the user's message and start generating a reply."""
        food_items = self.meal_service.list_food_items(user_id, meal_id)
        if food_items is None:
            return None
        history = self.message_repository.list_messages(meal_id)
        now = self.clock()
        user_message = ChatMessage(
            id=uuid4(),
            meal_id=meal_id,
            role="user",
            content=message,
            created_at=now,
        )
        self.message_repository.create_message(user_message)

        turn = ChatTurn(meal_id=meal_id, user_message_id=user_message.id)
        request = GenerationRequest(
            food_items=food_items,
            history=history,
            user_message=message,
            current_time=now,
        )
        task = asyncio.create_task(self._run_turn(turn, user_id, request))
        turn._task = task
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return turn

    async def wait_for_background(self) -> None:
        """Wait for all in-flight turns to finish."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def _run_turn(
        self, turn: ChatTurn, user_id: UUID, request: GenerationRequest
    ) -> None:
        try:
            stream = await self.generation_service.invoke(request)
            turn.state = TurnState.STREAMING
            async for fragment in stream.fragments:
                turn.fragments.append(fragment)
                turn._emit(TextEvent(text=fragment))
            turn.state = TurnState.FINALIZING
            self._save_reply(turn)
        except Exception:
            logger.exception("Chat turn failed for meal %s", turn.meal_id)
        finally:
            if not turn.finished:
                turn.state = TurnState.FAILED
                turn._finish(ErrorEvent(message=CHAT_ERROR_MESSAGE))
        if turn.state is TurnState.FAILED:
            return

        await self._record_usage(user_id, stream)
        turn.state = TurnState.COMPLETE

    def _save_reply(self, turn: ChatTurn) -> None:
        full_text = turn.full_text
        changes = extract_edits(full_text)
        assistant_message = ChatMessage(
            id=uuid4(),
            meal_id=turn.meal_id,
            role="assistant",
            content=filter_display_text(full_text),
            created_at=self.clock(),
            applied_changes=changes,
        )
        self.message_repository.create_message(assistant_message)
        turn.assistant_message_id = assistant_message.id
        turn.changes = changes
        turn._finish(DoneEvent(message_id=assistant_message.id, changes=changes))

    async def _record_usage(self, user_id: UUID, stream: GenerationStream) -> None:
        try:
            usage = await stream.usage()
            if usage is None:
                logger.warning("No usage reported for chat turn of user %s", user_id)
                return
            self.usage_service.record_usage(user_id, MEAL_CHAT_FEATURE, usage)
        except Exception:
            logger.exception("Failed to record AI usage for user %s", user_id)
