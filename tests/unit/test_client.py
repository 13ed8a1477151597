"""Unit tests for agentforge.client."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from agentforge import __version__
from agentforge.client import ModelClient, build_http_client, default_prompt
from agentforge.config import ApiSettings
from agentforge.errors import AgentForgeError, ErrorCode
from agentforge.models.analysis import ProjectAnalysis
from agentforge.models.generation import (
    GenerationRequest,
    GenerationTask,
    ItemKind,
    ModelTier,
)

BASE_URL = "https://models.example.com"
MESSAGES_URL = f"{BASE_URL}/v1/messages"

SETTINGS = ApiSettings(base_url=BASE_URL, api_key="test-key", timeout_seconds=5)


def _request(
    kind: ItemKind = ItemKind.SKILL, name: str = "react", tier: ModelTier = ModelTier.MID
) -> GenerationRequest:
    return GenerationRequest(
        task=GenerationTask(kind=kind, name=name), tier=tier, goal="A todo app"
    )


def _message(*texts: str) -> dict:
    return {"content": [{"type": "text", "text": t} for t in texts]}


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    async def test_client_configuration(self) -> None:
        async with build_http_client(SETTINGS) as client:
            assert str(client.base_url).rstrip("/") == BASE_URL
            assert client.headers["x-api-key"] == "test-key"
            assert client.headers["anthropic-version"] == SETTINGS.api_version
            assert client.headers["User-Agent"] == f"agentforge/{__version__}"
            assert client.timeout.read == 5


# ---------------------------------------------------------------------------
# default_prompt
# ---------------------------------------------------------------------------


class TestDefaultPrompt:
    def test_includes_goal_and_item(self) -> None:
        prompt = default_prompt(_request())
        assert "A todo app" in prompt
        assert "skill 'react'" in prompt

    def test_includes_analysis(self, sample_analysis: ProjectAnalysis) -> None:
        request = _request().model_copy(update={"analysis": sample_analysis})
        prompt = default_prompt(request)
        assert "Project type: react" in prompt
        assert "Dependencies: react" in prompt


# ---------------------------------------------------------------------------
# ModelClient
# ---------------------------------------------------------------------------


class TestModelClient:
    async def test_missing_api_key(self) -> None:
        async with httpx.AsyncClient() as client:
            with pytest.raises(AgentForgeError) as exc_info:
                ModelClient(client, ApiSettings(api_key=None))
        assert exc_info.value.code == ErrorCode.INVALID_CONFIG

    async def test_successful_generation(self) -> None:
        with respx.mock:
            route = respx.post(MESSAGES_URL).mock(
                return_value=httpx.Response(200, json=_message("# React", "\n\nUse hooks."))
            )
            async with build_http_client(SETTINGS) as client:
                text = await ModelClient(client, SETTINGS).generate(_request())

        assert text == "# React\n\nUse hooks."
        body = json.loads(route.calls.last.request.content)
        assert body["model"] == SETTINGS.model_ids[ModelTier.MID]
        assert body["max_tokens"] == SETTINGS.max_tokens[ItemKind.SKILL]
        assert body["messages"][0]["role"] == "user"

    async def test_tier_selects_model_id(self) -> None:
        with respx.mock:
            route = respx.post(MESSAGES_URL).mock(
                return_value=httpx.Response(200, json=_message("ok"))
            )
            async with build_http_client(SETTINGS) as client:
                await ModelClient(client, SETTINGS).generate(
                    _request(kind=ItemKind.HOOK, name="lint", tier=ModelTier.LOW)
                )

        body = json.loads(route.calls.last.request.content)
        assert body["model"] == SETTINGS.model_ids[ModelTier.LOW]
        assert body["max_tokens"] == SETTINGS.max_tokens[ItemKind.HOOK]

    async def test_custom_prompt_builder(self) -> None:
        with respx.mock:
            route = respx.post(MESSAGES_URL).mock(
                return_value=httpx.Response(200, json=_message("ok"))
            )
            async with build_http_client(SETTINGS) as client:
                model = ModelClient(client, SETTINGS, build_prompt=lambda r: f"write {r.task.name}")
                await model.generate(_request())

        body = json.loads(route.calls.last.request.content)
        assert body["messages"][0]["content"] == "write react"

    async def test_non_text_blocks_ignored(self) -> None:
        payload = {"content": [{"type": "tool_use", "id": "x"}, {"type": "text", "text": "hi"}]}
        with respx.mock:
            respx.post(MESSAGES_URL).mock(return_value=httpx.Response(200, json=payload))
            async with build_http_client(SETTINGS) as client:
                assert await ModelClient(client, SETTINGS).generate(_request()) == "hi"

    async def test_timeout(self) -> None:
        with respx.mock:
            respx.post(MESSAGES_URL).mock(side_effect=httpx.ReadTimeout("slow"))
            async with build_http_client(SETTINGS) as client:
                with pytest.raises(AgentForgeError) as exc_info:
                    await ModelClient(client, SETTINGS).generate(_request())
        assert exc_info.value.code == ErrorCode.GENERATION_TIMEOUT
        assert exc_info.value.recoverable is True

    async def test_network_error(self) -> None:
        with respx.mock:
            respx.post(MESSAGES_URL).mock(side_effect=httpx.ConnectError("refused"))
            async with build_http_client(SETTINGS) as client:
                with pytest.raises(AgentForgeError) as exc_info:
                    await ModelClient(client, SETTINGS).generate(_request())
        assert exc_info.value.code == ErrorCode.GENERATION_FAILED

    @pytest.mark.parametrize(
        ("status", "recoverable"),
        [(401, False), (400, False), (429, True), (500, True), (529, True)],
    )
    async def test_http_error_status(self, status: int, recoverable: bool) -> None:
        with respx.mock:
            respx.post(MESSAGES_URL).mock(return_value=httpx.Response(status))
            async with build_http_client(SETTINGS) as client:
                with pytest.raises(AgentForgeError) as exc_info:
                    await ModelClient(client, SETTINGS).generate(_request())
        assert exc_info.value.code == ErrorCode.GENERATION_FAILED
        assert exc_info.value.recoverable is recoverable
        assert str(status) in exc_info.value.message

    async def test_non_json_body(self) -> None:
        with respx.mock:
            respx.post(MESSAGES_URL).mock(return_value=httpx.Response(200, text="<html>"))
            async with build_http_client(SETTINGS) as client:
                with pytest.raises(AgentForgeError) as exc_info:
                    await ModelClient(client, SETTINGS).generate(_request())
        assert exc_info.value.code == ErrorCode.GENERATION_FAILED
        assert "Malformed" in exc_info.value.message

    async def test_empty_text(self) -> None:
        with respx.mock:
            respx.post(MESSAGES_URL).mock(
                return_value=httpx.Response(200, json=_message("   "))
            )
            async with build_http_client(SETTINGS) as client:
                with pytest.raises(AgentForgeError) as exc_info:
                    await ModelClient(client, SETTINGS).generate(_request())
        assert exc_info.value.code == ErrorCode.GENERATION_FAILED
        assert "Empty" in exc_info.value.message
