# chuk_rag_session/providers/__init__.py
"""
Backend adapters, one per provider family.

``build_adapter`` picks the implementation once, from the provider family
and capabilities resolved at session creation.
"""

from __future__ import annotations

from typing import Any

from chuk_rag_session.models.capabilities import ProviderDescriptor
from chuk_rag_session.models.enums import ProviderFamily
from chuk_rag_session.providers.base import (
    BackendAdapter,
    RawChunk,
    RawUsage,
    SessionHandle,
    StatefulBackend,
    StatelessBackend,
    TurnRequest,
)
from chuk_rag_session.providers.openai_compat import OpenAICompatibleBackend, openai_engine_factory
from chuk_rag_session.providers.registry import EngineRegistry, ProgressChannel, ProgressReporter
from chuk_rag_session.providers.stateful import SingleTurnAdapter, StatefulSessionAdapter
from chuk_rag_session.providers.stateless import StatelessReplayAdapter


def build_adapter(
    descriptor: ProviderDescriptor,
    backend: Any,
    *,
    wait_for_download: bool = False,
) -> BackendAdapter:
    """Select and construct the adapter for a provider family."""
    if descriptor.family == ProviderFamily.STATELESS_REPLAY:
        return StatelessReplayAdapter(descriptor, backend)
    if descriptor.single_turn:
        return SingleTurnAdapter(descriptor, backend, wait_for_download=wait_for_download)
    return StatefulSessionAdapter(descriptor, backend, wait_for_download=wait_for_download)


__all__ = [
    "BackendAdapter",
    "EngineRegistry",
    "OpenAICompatibleBackend",
    "ProgressChannel",
    "ProgressReporter",
    "RawChunk",
    "RawUsage",
    "SessionHandle",
    "SingleTurnAdapter",
    "StatefulBackend",
    "StatefulSessionAdapter",
    "StatelessBackend",
    "StatelessReplayAdapter",
    "TurnRequest",
    "build_adapter",
    "openai_engine_factory",
]
