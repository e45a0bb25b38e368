# chuk_rag_session/policies.py
"""
Budget-window policies.

How much of a model's window a conversation has consumed depends on the
backend. Stateless-replay runtimes with prefix caching report only the
incremental prompt on later turns, so their window is treated as refreshed
on every call. That is an observed behaviour of specific runtimes rather
than a guarantee, so it lives here as a named policy that callers can swap
for ``CumulativeWindowPolicy`` when a substituted backend does not cache.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

from chuk_rag_session.models.enums import ProviderFamily


class WindowSnapshot(BaseModel):
    """Inputs a policy needs to account for one session."""

    limit: int
    cumulative_tokens: int = 0
    last_turn_tokens: int = 0


class WindowPolicy(ABC):
    """Decides ``used``/``available`` and whether another exchange fits."""

    name: str = "window"

    @abstractmethod
    def used(self, snapshot: WindowSnapshot) -> int: ...

    @abstractmethod
    def available(self, snapshot: WindowSnapshot) -> int: ...

    @abstractmethod
    def can_continue(self, snapshot: WindowSnapshot) -> bool: ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RefreshedWindowPolicy(WindowPolicy):
    """The window is considered fully available again on every call."""

    name = "refreshed"

    def __init__(self, reserved_response_buffer: int):
        self.reserved_response_buffer = reserved_response_buffer

    def used(self, snapshot: WindowSnapshot) -> int:
        return snapshot.last_turn_tokens

    def available(self, snapshot: WindowSnapshot) -> int:
        return snapshot.limit - self.reserved_response_buffer

    def can_continue(self, snapshot: WindowSnapshot) -> bool:
        return True

    def __repr__(self) -> str:
        return f"RefreshedWindowPolicy(reserved_response_buffer={self.reserved_response_buffer})"


class CumulativeWindowPolicy(WindowPolicy):
    """Conventional accounting: every turn erodes the window."""

    name = "cumulative"

    def __init__(self, cushion: int, min_tokens_for_exchange: int):
        self.cushion = cushion
        self.min_tokens_for_exchange = min_tokens_for_exchange

    def used(self, snapshot: WindowSnapshot) -> int:
        return snapshot.cumulative_tokens

    def available(self, snapshot: WindowSnapshot) -> int:
        return max(0, snapshot.limit - self.cushion - snapshot.cumulative_tokens)

    def can_continue(self, snapshot: WindowSnapshot) -> bool:
        return self.available(snapshot) > self.min_tokens_for_exchange

    def __repr__(self) -> str:
        return (
            f"CumulativeWindowPolicy(cushion={self.cushion}, "
            f"min_tokens_for_exchange={self.min_tokens_for_exchange})"
        )


def default_policy_for(
    family: ProviderFamily,
    *,
    cushion: int,
    min_tokens_for_exchange: int,
    reserved_response_buffer: int,
) -> WindowPolicy:
    if family == ProviderFamily.STATELESS_REPLAY:
        return RefreshedWindowPolicy(reserved_response_buffer)
    return CumulativeWindowPolicy(cushion, min_tokens_for_exchange)
