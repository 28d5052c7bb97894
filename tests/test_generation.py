"""EventGenerator against a stubbed OpenAI client."""

import json
import random
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from rotation_backend.core.config import Settings
from rotation_backend.core.errors import GenerationUnavailable
from rotation_backend.services.generation import EventGenerator, events_to_payloads


def _client_returning(content):
    message = MagicMock()
    message.content = content
    response = MagicMock()
    response.choices = [MagicMock(message=message)]
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response)
    client.close = AsyncMock()
    return client


def _generator(client, **kwargs):
    return EventGenerator(client=client, model="test-model", rng=random.Random(7), **kwargs)


def test_uninitialized_without_configuration() -> None:
    settings = Settings(_env_file=None, OPENAI_API_KEY=None, OPENAI_BASE_URL=None, OPENAI_MODEL=None)
    assert EventGenerator.from_settings(settings).is_initialized() is False


def test_initialized_from_complete_settings() -> None:
    settings = Settings(
        _env_file=None,
        OPENAI_API_KEY="sk-test",
        OPENAI_BASE_URL="http://localhost:9999/v1",
        OPENAI_MODEL="gpt-test",
    )
    assert EventGenerator.from_settings(settings).is_initialized() is True


@pytest.mark.asyncio
async def test_generate_raises_when_not_configured() -> None:
    with pytest.raises(GenerationUnavailable):
        await EventGenerator().generate_events("anything")


@pytest.mark.asyncio
async def test_generate_parses_events_and_varies_base_amount() -> None:
    content = json.dumps(
        {
            "events": [
                {"message": "Storm damages your hotel", "type": "chance", "baseAmount": 1000},
                {"message": "Fixed fee", "type": "system", "amount": 50},
                {"message": "Quiet day", "type": "system"},
            ]
        }
    )
    gen = _generator(_client_returning(content))

    result = await gen.generate_events("a stormy night", 1, 5)

    assert result.success is True
    storm, fee, quiet = result.data
    assert 800 <= storm.amount <= 1200
    assert storm.base_amount == 1000
    assert fee.amount == 50
    assert quiet.amount is None
    payloads = events_to_payloads(result.data)
    assert payloads[0]["baseAmount"] == 1000
    assert payloads[2] == {"message": "Quiet day", "type": "system"}


@pytest.mark.asyncio
async def test_prompt_carries_requested_range_and_user_text() -> None:
    client = _client_returning(json.dumps({"events": [{"message": "x", "type": "trade"}]}))
    gen = _generator(client)

    await gen.generate_events("market day", 2, 4)

    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "test-model"
    assert "between 2 and 4" in kwargs["messages"][0]["content"]
    assert kwargs["messages"][1] == {"role": "user", "content": "market day"}
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_result_is_truncated_to_max_count() -> None:
    events = [{"message": f"e{n}", "type": "system"} for n in range(6)]
    gen = _generator(_client_returning(json.dumps({"events": events})))

    result = await gen.generate_events("many", 1, 3)

    assert [e.message for e in result.data] == ["e0", "e1", "e2"]


@pytest.mark.asyncio
async def test_malformed_entries_are_skipped() -> None:
    content = json.dumps({"events": [{"type": "chance"}, "junk", {"message": "ok", "type": "auction"}]})
    gen = _generator(_client_returning(content))

    result = await gen.generate_events("mixed")

    assert result.success is True
    assert [e.message for e in result.data] == ["ok"]


@pytest.mark.asyncio
async def test_reply_without_usable_events_is_unsuccessful() -> None:
    gen = _generator(_client_returning(json.dumps({"events": [{"type": "bogus"}]})))

    result = await gen.generate_events("nothing")

    assert result.success is False
    assert result.data == []


@pytest.mark.asyncio
async def test_non_json_reply_is_unsuccessful() -> None:
    gen = _generator(_client_returning("Sure! Here are some events..."))

    result = await gen.generate_events("chatty")

    assert result.success is False
    assert "JSON" in result.error


@pytest.mark.asyncio
async def test_api_failure_becomes_generation_unavailable() -> None:
    client = _client_returning("{}")
    client.chat.completions.create = AsyncMock(side_effect=OpenAIError("rate limited"))
    gen = _generator(client)

    with pytest.raises(GenerationUnavailable):
        await gen.generate_events("anything")
