"""Tests for the OpenAI streaming chat adapter."""

import asyncio
import logging
from types import SimpleNamespace

import pytest

from meal_chat.adapters.openai_chat_client import OpenAIChatClient
from meal_chat.domain.chat import TokenUsage


async def _replay(events):  # type: ignore[no-untyped-def]
    for event in events:
        yield event


class _FakeResponses:
    def __init__(self, events: list[object]) -> None:
        self.events = events
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return _replay(self.events)


class _FakeOpenAI:
    def __init__(self, events: list[object]) -> None:
        self.responses = _FakeResponses(events)


def _delta(text: str) -> SimpleNamespace:
    return SimpleNamespace(type="response.output_text.delta", delta=text)


def _completed(input_tokens: int, output_tokens: int) -> SimpleNamespace:
    usage = SimpleNamespace(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=input_tokens + output_tokens,
    )
    return SimpleNamespace(
        type="response.completed", response=SimpleNamespace(usage=usage)
    )


async def _drain(stream):  # type: ignore[no-untyped-def]
    return [fragment async for fragment in stream.fragments]


def test_openai_chat_client_streams_deltas_and_usage() -> None:
    fake = _FakeOpenAI(
        [
            SimpleNamespace(type="response.created"),
            _delta("ご飯を"),
            _delta(""),
            _delta("追加します。"),
            _completed(120, 30),
        ]
    )
    client = OpenAIChatClient(client=fake)

    async def run():  # type: ignore[no-untyped-def]
        stream = await client.stream_chat(
            model="gpt-5.2",
            reasoning_effort="low",
            store=False,
            instructions="記録してください",
            messages=[{"role": "user", "content": "ご飯"}],
        )
        return await _drain(stream), await stream.usage()

    fragments, usage = asyncio.run(run())

    assert fragments == ["ご飯を", "追加します。"]
    assert usage == TokenUsage(
        prompt_tokens=120, completion_tokens=30, total_tokens=150
    )
    payload = fake.responses.last_payload
    assert payload is not None
    assert payload["stream"] is True
    assert payload["store"] is False
    assert payload["reasoning"] == {"effort": "low"}
    assert payload["input"] == [{"role": "user", "content": "ご飯"}]


def test_openai_chat_client_omits_reasoning_when_unset(caplog, monkeypatch) -> None:
    monkeypatch.setattr(logging.getLogger("meal_chat"), "propagate", True)
    fake = _FakeOpenAI([_delta("ok")])
    client = OpenAIChatClient(client=fake)

    async def run():  # type: ignore[no-untyped-def]
        stream = await client.stream_chat(
            model="gpt-5.2",
            reasoning_effort=None,
            store=True,
            instructions="",
            messages=[],
        )
        return await _drain(stream), await stream.usage()

    with caplog.at_level(logging.WARNING, logger="meal_chat.adapters"):
        fragments, usage = asyncio.run(run())

    assert fragments == ["ok"]
    assert usage is None
    assert "last event was response.output_text.delta" in caplog.text
    assert "reasoning" not in (fake.responses.last_payload or {})


def test_openai_chat_client_raises_on_failed_stream() -> None:
    fake = _FakeOpenAI([_delta("途中"), SimpleNamespace(type="response.failed")])
    client = OpenAIChatClient(client=fake)
    received: list[str] = []

    async def run() -> None:
        stream = await client.stream_chat(
            model="gpt-5.2",
            reasoning_effort="low",
            store=False,
            instructions="",
            messages=[],
        )
        async for fragment in stream.fragments:
            received.append(fragment)

    with pytest.raises(RuntimeError, match="response.failed"):
        asyncio.run(run())

    assert received == ["途中"]


def test_usage_before_stream_end_is_an_error() -> None:
    client = OpenAIChatClient(client=_FakeOpenAI([_delta("a")]))

    async def run() -> None:
        stream = await client.stream_chat(
            model="gpt-5.2",
            reasoning_effort="low",
            store=False,
            instructions="",
            messages=[],
        )
        await stream.usage()

    with pytest.raises(RuntimeError, match="after the stream ends"):
        asyncio.run(run())
