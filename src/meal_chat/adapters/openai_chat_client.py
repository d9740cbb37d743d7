"""OpenAI Responses API client for streaming chat replies."""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from openai import AsyncOpenAI

from meal_chat.domain.chat import GenerationStream, TokenUsage
from meal_chat.services.generation import ChatModelClient

logger = logging.getLogger(__name__)


@dataclass
class _UsageCollector:
    usage: TokenUsage | None = None
    finished: bool = False
    last_event_type: str | None = None

    async def report(self) -> TokenUsage | None:
        if not self.finished:
            raise RuntimeError("Usage is only available after the stream ends")
        return self.usage


@dataclass
class OpenAIChatClient(ChatModelClient):
    """Chat client backed by OpenAI Responses API streaming."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIChatClient":
        """Create an OpenAI chat client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def stream_chat(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instructions: str,
        messages: list[dict[str, str]],
    ) -> GenerationStream:
        """Start a streamed response and expose its text deltas."""
        request_payload: dict[str, object] = {
            "model": model,
            "instructions": instructions,
            "input": messages,
            "store": store,
            "stream": True,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        events = await self.client.responses.create(**request_payload)
        collector = _UsageCollector()
        return GenerationStream(
            fragments=_text_deltas(events, collector),
            usage=collector.report,
        )


async def _text_deltas(
    events: AsyncIterator[object], collector: _UsageCollector
) -> AsyncIterator[str]:
    async for event in events:
        event_type = getattr(event, "type", None)
        collector.last_event_type = event_type
        if event_type == "response.output_text.delta":
            delta = getattr(event, "delta", "")
            if delta:
                yield delta
        elif event_type == "response.completed":
            collector.usage = _parse_usage(getattr(event.response, "usage", None))
        elif event_type in {"response.failed", "error"}:
            raise RuntimeError(f"OpenAI stream failed: {event_type}")
    collector.finished = True
    if collector.usage is None:
        logger.warning(
            "Response stream ended without usage; last event was %s",
            collector.last_event_type,
        )


def _parse_usage(usage: object) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(
        prompt_tokens=int(getattr(usage, "input_tokens", 0) or 0),
        completion_tokens=int(getattr(usage, "output_tokens", 0) or 0),
        total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
    )
