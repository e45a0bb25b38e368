# chuk_rag_session/providers/base.py
"""
Backend protocols and the adapter interface.

Backends are consumed as opaque streaming completion services in one of two
shapes: a stateless ``stream_chat(messages)`` call, or a stateful handle
created once and prompted with only the new message. Adapters are the only
code aware of which shape a backend has.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from chuk_rag_session.models.capabilities import ProviderDescriptor
from chuk_rag_session.models.enums import Availability, ProviderFamily
from chuk_rag_session.models.events import StreamEvent
from chuk_rag_session.models.turn import Turn
from chuk_rag_session.prompts import build_base_prompts


class RawUsage(BaseModel):
    """Usage counts as reported by a backend for one call."""

    prompt_tokens: int = 0
    completion_tokens: int = 0


class RawChunk(BaseModel):
    """One item of a backend stream: a text delta, a stop reason, or usage."""

    text: str | None = None
    finish_reason: str | None = None
    usage: RawUsage | None = None


@runtime_checkable
class StatelessBackend(Protocol):
    """Backend that needs the full message array on every call."""

    def stream_chat(
        self,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int | None = None,
    ) -> AsyncIterator[RawChunk]: ...


@runtime_checkable
class SessionHandle(Protocol):
    """Runtime-side conversation state."""

    @property
    def input_usage(self) -> int:
        """Cumulative input tokens consumed on this handle."""
        ...

    @property
    def input_quota(self) -> int | None: ...

    def prompt_streaming(self, message: str) -> AsyncIterator[RawChunk]: ...

    def destroy(self) -> None: ...


@runtime_checkable
class StatefulBackend(Protocol):
    """Backend that keeps conversation state on a handle."""

    async def availability(self) -> Availability: ...

    async def create_handle(
        self,
        initial_prompts: list[dict[str, str]],
        *,
        temperature: float,
    ) -> SessionHandle: ...


class TurnRequest(BaseModel):
    """The session's generic "send a message" intent."""

    user_text: str
    history: list[Turn] = Field(default_factory=list, description="Committed turns before this message")
    context: str = ""
    temperature: float = 1.0
    max_output_tokens: int | None = None

    def base_prompts(self) -> list[dict[str, str]]:
        return build_base_prompts(self.context)

    def seed_prompts(self) -> list[dict[str, str]]:
        """Base prompts followed by the committed history."""
        return [*self.base_prompts(), *(turn.as_message() for turn in self.history)]

    def prompt_messages(self) -> list[dict[str, str]]:
        """Base prompts, history and the new message, in order."""
        return [*self.seed_prompts(), Turn.user(self.user_text).as_message()]


class BackendAdapter(ABC):
    """
    Translates a ``TurnRequest`` into a backend call and normalises its reply.

    ``send`` yields zero or more ``data`` events, at most one
    ``finishReason`` event and exactly one terminal ``usage`` event whose
    message is a ``TurnUsage``. The ``done`` event belongs to the session.
    """

    family: ProviderFamily

    def __init__(self, descriptor: ProviderDescriptor):
        self.descriptor = descriptor

    @property
    def single_turn(self) -> bool:
        return self.descriptor.single_turn

    @property
    def tracks_tokens(self) -> bool:
        return self.descriptor.capabilities.supports_token_tracking

    @property
    def handle(self) -> SessionHandle | None:
        """Provider-side handle, for stateful adapters that keep one."""
        return None

    def check_follow_up(self, committed_turns: int) -> None:
        """Raise if the backend cannot take another message."""
        return None

    def turn_number(self, visible_turns: int) -> int:
        return math.ceil(visible_turns / 2)

    @abstractmethod
    def send(self, request: TurnRequest) -> AsyncIterator[StreamEvent]: ...

    def close(self) -> None:
        """Release provider-side resources. Idempotent."""
        return None
