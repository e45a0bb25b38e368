# chuk_rag_session/providers/openai_compat.py
"""
Stateless backend over any OpenAI-compatible chat completions endpoint.

Works against the hosted API as well as local runtimes that expose the same
interface (and typically apply prefix caching to replayed history).
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from openai import AsyncOpenAI

from chuk_rag_session.providers.base import RawChunk, RawUsage
from chuk_rag_session.providers.registry import ProgressReporter

logger = logging.getLogger(__name__)


class OpenAICompatibleBackend:
    """Streams chat completions with usage reporting enabled."""

    def __init__(self, model: str, client: AsyncOpenAI | None = None, **client_kwargs: Any):
        self.model = model
        self._client = client or AsyncOpenAI(**client_kwargs)

    async def stream_chat(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int | None = None,
    ) -> AsyncIterator[RawChunk]:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens

        stream = await self._client.chat.completions.create(**request)
        async for chunk in stream:
            choice = chunk.choices[0] if chunk.choices else None
            if choice is not None:
                delta = choice.delta
                if delta is not None and delta.content:
                    yield RawChunk(text=delta.content)
                if choice.finish_reason:
                    yield RawChunk(finish_reason=choice.finish_reason)
            if chunk.usage is not None:
                yield RawChunk(
                    usage=RawUsage(
                        prompt_tokens=chunk.usage.prompt_tokens or 0,
                        completion_tokens=chunk.usage.completion_tokens or 0,
                    )
                )


def openai_engine_factory(
    base_url: str | None = None,
    api_key: str | None = None,
) -> Callable[[str, ProgressReporter], Awaitable[OpenAICompatibleBackend]]:
    """
    Factory for ``EngineRegistry.register_factory``.

    Reads ``OPENAI_BASE_URL``/``OPENAI_API_KEY`` when not given. Local
    servers usually accept any key.
    """

    async def create(model: str, report: ProgressReporter) -> OpenAICompatibleBackend:
        kwargs: dict[str, Any] = {
            "api_key": api_key or os.getenv("OPENAI_API_KEY") or "not-needed",
        }
        url = base_url or os.getenv("OPENAI_BASE_URL")
        if url:
            kwargs["base_url"] = url
        backend = OpenAICompatibleBackend(model, **kwargs)
        logger.debug(f"Created OpenAI-compatible backend for {model} at {url or 'default endpoint'}")
        report("Ready", 1.0)
        return backend

    return create
