"""Tests for the extraction agent and the JSON helpers it relies on."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agents import ExtractionAgent
from models import MapEdgeAction
from utils.llm import APIError, LLMClient, LLMError, LLMResponse, extract_json, strip_code_fence


def _agent(*contents, side_effect=None):
    client = MagicMock()
    if side_effect is not None:
        client.call = AsyncMock(side_effect=side_effect)
    else:
        client.call = AsyncMock(side_effect=[LLMResponse(content=c) for c in contents])
    return ExtractionAgent(llm_client=client)


class TestJsonHelpers:

    def test_strip_code_fence(self):
        assert strip_code_fence("```json\n{\"a\": 1}\n```") == '{"a": 1}'
        assert strip_code_fence("  plain  ") == "plain"

    def test_extract_json_finds_embedded_value(self):
        assert extract_json('Sure! Here you go: {"actions": []} Hope that helps') == {"actions": []}
        assert extract_json("```\n[1, 2]\n```") == [1, 2]

    def test_extract_json_raises_without_json(self):
        with pytest.raises(json.JSONDecodeError):
            extract_json("no json here")


class TestParseCommand:

    @pytest.mark.asyncio
    async def test_fenced_action_list(self):
        agent = _agent('```json\n{"actions": [{"type": "MAP", "downline": "A", "upline": "B"}]}\n```')

        action_list = await agent.parse_command("put A under B")

        assert len(action_list) == 1
        assert isinstance(action_list.actions[0], MapEdgeAction)
        prompt = agent.llm_client.call.await_args.kwargs["prompt"]
        assert 'Instruction: "put A under B"' in prompt

    @pytest.mark.asyncio
    async def test_bare_list_is_accepted(self):
        agent = _agent('[{"type": "WIPE"}, {"type": "CREATE_MAIN_STRUCTURE"}]')
        assert len(await agent.parse_command("start fresh")) == 2

    @pytest.mark.asyncio
    async def test_invalid_json_returns_none(self):
        assert await _agent("I cannot help with that").parse_command("x") is None

    @pytest.mark.asyncio
    async def test_unknown_action_type_returns_none(self):
        assert await _agent('{"actions": [{"type": "EXPLODE"}]}').parse_command("x") is None

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self):
        agent = _agent(side_effect=LLMError("quota"))

        assert await agent.parse_command("x") is None
        assert agent.metrics.error_count == 1

    @pytest.mark.asyncio
    async def test_metrics_dict_counts_calls_and_errors(self):
        agent = _agent(side_effect=[
            LLMResponse(content='{"actions": [{"type": "WIPE"}]}', token_usage={"input_tokens": 10, "output_tokens": 5}),
            LLMError("quota"),
        ])

        await agent.parse_command("wipe it")
        await agent.parse_command("again")

        metrics = agent.metrics_dict()
        assert metrics["total_llm_calls"] == 1
        assert metrics["total_llm_tokens"] == 15
        assert metrics["error_count"] == 1

    @pytest.mark.asyncio
    async def test_no_client_returns_none(self):
        assert await ExtractionAgent().parse_command("x") is None


class TestExtractStep:

    @pytest.mark.asyncio
    async def test_step_one_plain_text(self):
        assert await _agent('  "Reflect Agencies"\n').extract_step(1, "x") == "Reflect Agencies"

    @pytest.mark.asyncio
    async def test_step_one_structured_variants(self):
        assert await _agent('{"name": "The Vault"}').extract_step(1, "x") == "The Vault"
        assert await _agent('["Apex", "Other"]').extract_step(1, "x") == "Apex"
        assert await _agent("```\nReflect\n```").extract_step(1, "x") == "Reflect"

    @pytest.mark.asyncio
    async def test_step_two_list(self):
        assert await _agent('```json\n["The Vault", "Apex"]\n```').extract_step(2, "x") == ["The Vault", "Apex"]

    @pytest.mark.asyncio
    async def test_step_three_pairs(self):
        value = await _agent('[{"downline": "Apex", "upline": "The Vault"}]').extract_step(3, "x")
        assert value == [{"downline": "Apex", "upline": "The Vault"}]

    @pytest.mark.asyncio
    async def test_step_non_json_returns_none(self):
        assert await _agent("The Vault and Apex").extract_step(2, "x") is None

    @pytest.mark.asyncio
    async def test_empty_content_returns_none(self):
        assert await _agent("   ").extract_step(1, "x") is None

    @pytest.mark.asyncio
    async def test_provider_error_returns_none(self):
        assert await _agent(side_effect=LLMError("down")).extract_step(2, "x") is None

    @pytest.mark.asyncio
    async def test_unknown_step(self):
        with pytest.raises(ValueError):
            await _agent("x").extract_step(4, "x")


class TestLLMClient:

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        provider = MagicMock()
        provider.call_single = AsyncMock(side_effect=[RuntimeError("flaky"), LLMResponse(content="ok")])
        client = LLMClient(provider, default_retry_count=2, default_retry_delay=0)

        with patch("utils.llm.asyncio.sleep", new=AsyncMock()):
            response = await client.call("hi")

        assert response.content == "ok"
        assert provider.call_single.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        provider = MagicMock()
        provider.call_single = AsyncMock(side_effect=APIError("down"))
        client = LLMClient(provider, default_retry_count=1, default_retry_delay=0)

        with patch("utils.llm.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(LLMError):
                await client.call("hi")

        assert provider.call_single.await_count == 2
