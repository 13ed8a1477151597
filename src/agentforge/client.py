"""Language-model client for artifact generation.

All network I/O for generation goes through a single ModelClient shared
across the batch. The ModelClient receives an httpx.AsyncClient via
constructor injection; the caller owns the client lifecycle. The timeout
configured on the httpx client is the per-call timeout; a timeout surfaces
as an ordinary per-item failure. No retries happen here.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import httpx
import structlog

from agentforge import __version__
from agentforge.errors import AgentForgeError, ErrorCode

if TYPE_CHECKING:
    from agentforge.config import ApiSettings
    from agentforge.models.generation import GenerationRequest

log = structlog.get_logger()

MESSAGES_PATH = "/v1/messages"

PromptBuilder = Callable[["GenerationRequest"], str]


def build_http_client(settings: ApiSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once per process."""
    return httpx.AsyncClient(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={
            "User-Agent": f"agentforge/{__version__}",
            "anthropic-version": settings.api_version,
            "x-api-key": settings.api_key or "",
        },
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def default_prompt(request: GenerationRequest) -> str:
    """Minimal prompt; real prompt templates are supplied by the caller."""
    lines = [
        f"Project goal: {request.goal}",
        f"Write the {request.task.kind} '{request.task.name}' as a markdown document.",
    ]
    if request.analysis is not None:
        analysis = request.analysis
        lines.append(f"Project type: {analysis.project_type}")
        if analysis.framework:
            lines.append(f"Framework: {analysis.framework}")
        if analysis.dependencies:
            names = ", ".join(dep.name for dep in analysis.dependencies[:20])
            lines.append(f"Dependencies: {names}")
    return "\n".join(lines)


def _extract_text(payload: object) -> str:
    if not isinstance(payload, dict):
        return ""
    blocks = payload.get("content") or []
    return "".join(
        block.get("text", "")
        for block in blocks
        if isinstance(block, dict) and block.get("type") == "text"
    )


class ModelClient:
    """Messages API client implementing GeneratorProtocol."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: ApiSettings,
        *,
        build_prompt: PromptBuilder = default_prompt,
    ) -> None:
        if not settings.api_key:
            raise AgentForgeError(
                code=ErrorCode.INVALID_CONFIG,
                message="No API key configured for generation.",
                suggestion="Set AGENTFORGE__API__API_KEY or api.api_key in agentforge.yaml.",
                recoverable=False,
            )
        self._client = client
        self._settings = settings
        self._build_prompt = build_prompt

    async def generate(self, request: GenerationRequest) -> str:
        """Run one generation call and return the response text.

        Raises AgentForgeError on timeouts, network errors, non-2xx
        responses and empty or malformed bodies.
        """
        task = request.task
        body = {
            "model": self._settings.model_ids[request.tier],
            "max_tokens": self._settings.max_tokens[task.kind],
            "messages": [{"role": "user", "content": self._build_prompt(request)}],
        }

        try:
            response = await self._client.post(MESSAGES_PATH, json=body)
        except httpx.TimeoutException as exc:
            raise AgentForgeError(
                code=ErrorCode.GENERATION_TIMEOUT,
                message=f"Timed out generating {task.label}",
                suggestion="The model service is slow or overloaded. Try again later.",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise AgentForgeError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"Network error generating {task.label}: {exc}",
                suggestion="Check network access to the model service.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            raise AgentForgeError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"HTTP {response.status_code} generating {task.label}",
                suggestion=(
                    "Check the API key."
                    if response.status_code in (401, 403)
                    else "The model service may be rate limiting or unavailable."
                ),
                recoverable=response.status_code in (429, 500, 502, 503, 529),
            )

        try:
            text = _extract_text(response.json())
        except ValueError as exc:
            raise AgentForgeError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"Malformed response generating {task.label}",
                suggestion="The model service returned a non-JSON body.",
                recoverable=True,
            ) from exc

        if not text.strip():
            raise AgentForgeError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"Empty response generating {task.label}",
                suggestion="Retry; the model returned no text content.",
                recoverable=True,
            )

        log.info(
            "generation_complete",
            item=task.label,
            tier=request.tier,
            content_length=len(text),
        )
        return text
