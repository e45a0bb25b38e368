# chuk_rag_session/providers/stateless.py
"""
Adapter for stateless-replay backends.

Every call carries base prompts, context, the prior history and the new
message. The backend's reported usage is treated as this call's figures:
with prefix caching, ``prompt_tokens`` on later turns reflects only the new
content, so it is never summed into a window-eroding total here.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from chuk_rag_session.models.capabilities import ProviderDescriptor
from chuk_rag_session.models.enums import ProviderFamily
from chuk_rag_session.models.events import StreamEvent
from chuk_rag_session.models.usage import TurnUsage
from chuk_rag_session.providers.base import BackendAdapter, RawUsage, StatelessBackend, TurnRequest
from chuk_rag_session.tokens import estimate_messages, estimate_tokens

logger = logging.getLogger(__name__)


class StatelessReplayAdapter(BackendAdapter):
    """Replays the full message array on each call."""

    family = ProviderFamily.STATELESS_REPLAY

    def __init__(self, descriptor: ProviderDescriptor, backend: StatelessBackend):
        super().__init__(descriptor)
        self._backend = backend

    async def send(self, request: TurnRequest) -> AsyncIterator[StreamEvent]:
        messages = request.prompt_messages()
        estimated_context = estimate_messages(messages)
        logger.debug(
            f"{self.descriptor.provider}/{self.descriptor.model}: replaying {len(messages)} messages "
            f"({len(request.history)} history), ~{estimated_context} tokens"
        )

        parts: list[str] = []
        usage: RawUsage | None = None

        async for raw in self._backend.stream_chat(
            messages,
            temperature=request.temperature,
            max_tokens=request.max_output_tokens,
        ):
            if raw.text:
                parts.append(raw.text)
                yield StreamEvent.data(raw.text)
            if raw.finish_reason:
                yield StreamEvent.finish_reason(raw.finish_reason)
            if raw.usage is not None:
                usage = raw.usage

        if usage is not None and self.tracks_tokens:
            turn_usage = TurnUsage(
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
                estimated_context_tokens=estimated_context,
                prompt=messages,
            )
        else:
            # Backend gave no usage: estimate the whole prompt, not just the new message
            turn_usage = TurnUsage(
                input_tokens=estimated_context,
                output_tokens=estimate_tokens("".join(parts)),
                estimated=True,
                estimated_context_tokens=estimated_context,
                prompt=messages,
            )

        logger.debug(
            f"{self.descriptor.provider}/{self.descriptor.model}: this turn "
            f"prompt={turn_usage.input_tokens} completion={turn_usage.output_tokens}"
            f"{' (estimated)' if turn_usage.estimated else ''}"
        )
        yield StreamEvent.usage(turn_usage)
