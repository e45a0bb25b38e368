# chuk_rag_session/providers/stateful.py
"""
Adapters for stateful-session backends.

The runtime keeps its own history on a handle, so only the new message is
sent. Per-turn input tokens come from the handle's cumulative counter: its
before/after values around a single streaming call are not reliable, so the
adapter remembers the last cumulative value it saw and reports
``current - last_known`` as the turn's input. A handle that fails mid-turn
is discarded, and the next turn opens a new one seeded with the committed
history.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from chuk_rag_session.exceptions import FollowUpNotSupportedError, ProviderUnavailableError
from chuk_rag_session.models.capabilities import ProviderDescriptor
from chuk_rag_session.models.enums import Availability, ProviderFamily
from chuk_rag_session.models.events import StreamEvent
from chuk_rag_session.models.usage import TurnUsage
from chuk_rag_session.providers.base import (
    BackendAdapter,
    RawUsage,
    SessionHandle,
    StatefulBackend,
    TurnRequest,
)
from chuk_rag_session.tokens import estimate_messages, estimate_tokens

logger = logging.getLogger(__name__)

_PENDING_DOWNLOAD = (Availability.DOWNLOADABLE, Availability.DOWNLOADING)


class StatefulSessionAdapter(BackendAdapter):
    """
    Multi-turn adapter over a lazily created, persistent handle.

    Args:
        descriptor: Provider/model description from the capability registry.
        backend: The stateful backend.
        wait_for_download: Create the handle while the model is still
            downloading (creation then blocks) instead of raising
            ``ProviderUnavailableError``.
    """

    family = ProviderFamily.STATEFUL_SESSION

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        backend: StatefulBackend,
        *,
        wait_for_download: bool = False,
    ):
        super().__init__(descriptor)
        self._backend = backend
        self._wait_for_download = wait_for_download
        self._handle: SessionHandle | None = None
        self._last_known_input = 0
        # Input already reported on handles discarded after a failed turn
        self._retired_input = 0

    @property
    def handle(self) -> SessionHandle | None:
        return self._handle

    async def _check_availability(self) -> None:
        status = await self._backend.availability()
        if status == Availability.AVAILABLE:
            return
        if status in _PENDING_DOWNLOAD and self._wait_for_download:
            logger.info(f"{self.descriptor.provider}/{self.descriptor.model} is {status.value}; waiting on creation")
            return
        raise ProviderUnavailableError(
            self.descriptor.provider,
            self.descriptor.model,
            status.value,
            downloading=status in _PENDING_DOWNLOAD,
        )

    async def _create_handle(self, request: TurnRequest) -> SessionHandle:
        await self._check_availability()
        handle = await self._backend.create_handle(request.seed_prompts(), temperature=request.temperature)
        logger.info(
            f"Created {self.descriptor.provider}/{self.descriptor.model} session handle "
            f"({len(request.history)} committed turns)"
        )
        return handle

    async def send(self, request: TurnRequest) -> AsyncIterator[StreamEvent]:
        first_call = self._handle is None
        if self._handle is None:
            self._handle = await self._create_handle(request)
        try:
            async for event in self._stream(self._handle, request, first_call=first_call):
                yield event
        except BaseException:
            # The handle may hold the failed message; reseed from committed history next turn
            self._discard_handle()
            raise

    def _discard_handle(self) -> None:
        if self._handle is not None:
            self._handle.destroy()
            self._handle = None
            logger.info(
                f"Discarded {self.descriptor.provider}/{self.descriptor.model} session handle after a failed turn"
            )
        self._retired_input += self._last_known_input
        self._last_known_input = 0

    async def _stream(
        self,
        handle: SessionHandle,
        request: TurnRequest,
        *,
        first_call: bool,
    ) -> AsyncIterator[StreamEvent]:
        parts: list[str] = []
        usage: RawUsage | None = None

        async for raw in handle.prompt_streaming(request.user_text):
            if raw.text:
                parts.append(raw.text)
                yield StreamEvent.data(raw.text)
            if raw.finish_reason:
                yield StreamEvent.finish_reason(raw.finish_reason)
            if raw.usage is not None:
                usage = raw.usage

        content = "".join(parts)
        estimated = not self.tracks_tokens
        if estimated:
            new_input = estimate_tokens(request.user_text)
            if first_call:
                new_input += estimate_messages(request.seed_prompts())
            current = self._last_known_input + new_input
        else:
            current = handle.input_usage

        input_tokens = current - self._last_known_input
        self._last_known_input = current

        if usage is not None and usage.completion_tokens and not estimated:
            output_tokens = usage.completion_tokens
        else:
            output_tokens = estimate_tokens(content)

        logger.debug(
            f"{self.descriptor.provider}/{self.descriptor.model}: cumulative input={current} "
            f"turn input={input_tokens} output={output_tokens}"
        )

        yield StreamEvent.usage(
            TurnUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cumulative_input_tokens=self._retired_input + current,
                input_quota=handle.input_quota,
                estimated=estimated,
                prompt=request.prompt_messages(),
            )
        )

    def close(self) -> None:
        if self._handle is not None:
            self._handle.destroy()
            self._handle = None
            logger.info(f"Released {self.descriptor.provider}/{self.descriptor.model} session handle")


class SingleTurnAdapter(StatefulSessionAdapter):
    """Single-shot backends: a fresh handle per call, never kept."""

    def check_follow_up(self, committed_turns: int) -> None:
        if committed_turns > 0:
            raise FollowUpNotSupportedError(self.descriptor.provider, self.descriptor.model)

    def turn_number(self, visible_turns: int) -> int:
        return 1

    async def send(self, request: TurnRequest) -> AsyncIterator[StreamEvent]:
        handle = await self._create_handle(request)
        self._last_known_input = 0
        try:
            async for event in self._stream(handle, request, first_call=True):
                yield event
        finally:
            handle.destroy()
