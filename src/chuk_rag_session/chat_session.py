# chuk_rag_session/chat_session.py
"""
ChatSession - the full RAG conversation lifecycle behind one object.

1. Search via the external collaborator
2. Context building from the returned chunks
3. Conversation session dispatch to the right backend adapter
4. Streaming with token tracking and timings
5. Follow-ups on the same context, where the backend allows

Follow-up messages never trigger a new search; ``start`` begins a fresh
conversation and tears down the previous one.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from typing import Any, Protocol

from chuk_rag_session.capabilities import CapabilityRegistry, default_registry
from chuk_rag_session.config import DEFAULT_TEMPERATURE, SessionSettings, get_model_cfg
from chuk_rag_session.context_builder import ContextBuilder, PassageResolver
from chuk_rag_session.conversation_session import ConversationSession
from chuk_rag_session.exceptions import (
    ConversationNotStartedError,
    RagSessionError,
    SessionBusyError,
    SessionDestroyedError,
)
from chuk_rag_session.models.capabilities import ProviderCapabilities
from chuk_rag_session.models.context import ContextBuildResult
from chuk_rag_session.models.enums import EventKind, ProviderFamily
from chuk_rag_session.models.events import StreamEvent
from chuk_rag_session.models.reference import ReferenceChunk, SearchFilters, SearchResults
from chuk_rag_session.models.turn import Turn
from chuk_rag_session.models.usage import TokenUsageReport
from chuk_rag_session.policies import WindowPolicy
from chuk_rag_session.providers import EngineRegistry, build_adapter

logger = logging.getLogger(__name__)


class SearchClient(Protocol):
    """The retrieval collaborator: ranked chunks for a query."""

    async def search(self, query: str, filters: SearchFilters) -> SearchResults: ...


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class ChatSession:
    """
    RAG chat over one provider/model.

    Examples:
        ```python
        chat = ChatSession("local_openai", model, search=search, resolver=search, engines=engines)
        async for event in chat.start("What is composable commerce?"):
            ...
        if chat.can_continue():
            async for event in chat.continue_("Tell me more"):
                ...
        chat.destroy()
        ```
    """

    def __init__(
        self,
        provider: str,
        model: str,
        *,
        search: SearchClient,
        resolver: PassageResolver,
        engines: EngineRegistry,
        temperature: float = DEFAULT_TEMPERATURE,
        capabilities: CapabilityRegistry | None = None,
        settings: SessionSettings | None = None,
        window_policy: WindowPolicy | None = None,
        context_builder: ContextBuilder | None = None,
        wait_for_download: bool = False,
    ):
        self._provider = provider
        self._model = model
        self._search = search
        self._engines = engines
        self._temperature = temperature
        self._settings = settings or SessionSettings()
        self._window_policy = window_policy
        self._wait_for_download = wait_for_download

        # Resolved once; capabilities do not change for the life of this object
        self._descriptor = (capabilities or default_registry()).describe(provider, model)
        self._model_cfg = get_model_cfg(provider, model)
        self._cushion = self._settings.cushion_for(self._model_cfg)
        self._builder = context_builder or ContextBuilder(
            resolver, min_context_chunks=self._settings.min_context_chunks
        )

        self._session: ConversationSession | None = None
        self._search_data: SearchResults | None = None
        self._context: ContextBuildResult | None = None
        self._raw_chunks: list[ReferenceChunk] = []
        self._initial_query = ""
        self._destroyed = False

    @property
    def session(self) -> ConversationSession | None:
        """The current conversation, if one was started."""
        return self._session

    @property
    def context(self) -> ContextBuildResult | None:
        return self._context

    async def _open_session(
        self,
        context: ContextBuildResult,
        history: list[Turn] | None = None,
    ) -> ConversationSession:
        backend = await self._engines.get_engine(self._provider, self._model)
        adapter = build_adapter(self._descriptor, backend, wait_for_download=self._wait_for_download)
        return ConversationSession(
            self._descriptor,
            adapter,
            self._model_cfg,
            temperature=self._temperature,
            context=context,
            settings=self._settings,
            window_policy=self._window_policy,
            history=history,
        )

    def _teardown_conversation(self) -> None:
        if self._session is not None:
            self._session.destroy()
            self._session = None
        self._search_data = None
        self._context = None
        self._raw_chunks = []
        self._initial_query = ""

    async def _stream(
        self,
        query: str,
        started: float,
        elapsed: dict[str, Any],
    ) -> AsyncIterator[StreamEvent]:
        assert self._session is not None
        first_token: int | None = None

        async for event in self._session.send_message(query):
            if event.type == EventKind.DATA and first_token is None:
                first_token = _elapsed_ms(started)
            elif event.type == EventKind.USAGE:
                timings = {**elapsed, "tokens_first": first_token, "tokens_last": _elapsed_ms(started)}
                event = StreamEvent.usage(event.message.model_copy(update={"elapsed": timings}))
            yield event

    async def start(self, query: str, filters: SearchFilters | None = None) -> AsyncIterator[StreamEvent]:
        """
        Start a new conversation: search, build context, stream the first answer.

        Yields a ``search`` event first, then the turn's events.
        """
        if self._destroyed:
            raise SessionDestroyedError()

        self._teardown_conversation()
        started = time.monotonic()

        results = await self._search.search(query, filters or SearchFilters())
        elapsed: dict[str, Any] = {"search": _elapsed_ms(started)}

        context = await self._builder.build(
            results.chunks,
            query,
            self._model_cfg.max_tokens,
            cushion=self._cushion,
            dedup_mode=self._settings.dedup_mode,
        )
        self._context = context
        self._raw_chunks = list(results.chunks)
        self._initial_query = query

        metadata = {
            **results.metadata,
            "elapsed": elapsed,
            "context": context.context_text,
            "context_chunk_count": context.chunk_count,
            "context_token_estimate": context.token_estimate,
            "context_tokens": context.context_tokens(),
        }
        self._search_data = results.model_copy(update={"metadata": metadata})
        yield StreamEvent(type=EventKind.SEARCH, message=self._search_data)

        self._session = await self._open_session(context)
        async for event in self._stream(query, started, elapsed):
            yield event

    async def continue_(self, query: str) -> AsyncIterator[StreamEvent]:
        """Send a follow-up on the existing context (no new search)."""
        if self._destroyed:
            raise SessionDestroyedError()
        if self._session is None or not self._session.get_history():
            raise ConversationNotStartedError()

        async for event in self._stream(query, time.monotonic(), {}):
            yield event

    async def reduce_context(self) -> bool:
        """
        Rebuild the context with half as many chunks (never below the floor).

        Only stateless-replay backends pick up a smaller context, since a
        stateful handle was seeded with its context when it was created.
        The committed history and token counters carry over to the rebuilt
        session.

        Returns:
            Whether the context was reduced.
        """
        if self._destroyed:
            raise SessionDestroyedError()
        context = self._context
        if context is None or not self._raw_chunks or context.chunk_count <= self._settings.min_context_chunks:
            return False
        if self._descriptor.family != ProviderFamily.STATELESS_REPLAY:
            logger.info(f"Context reduction skipped for {self._provider}/{self._model}: handle holds its context")
            return False
        if self._session is not None and self._session.in_flight:
            raise SessionBusyError()

        target = max(context.chunk_count // 2, self._settings.min_context_chunks)
        logger.debug(f"Reducing context from {context.chunk_count} to {target} chunks")
        try:
            reduced = await self._builder.rebuild_with_limit(
                self._raw_chunks,
                self._initial_query,
                target,
                self._model_cfg.max_tokens,
                cushion=self._cushion,
                dedup_mode=self._settings.dedup_mode,
            )
        except RagSessionError as e:
            logger.warning(f"Failed to reduce context: {e}")
            return False

        previous = self._session
        history = previous.get_history() if previous is not None else []
        session = await self._open_session(reduced, history=history)
        if previous is not None:
            session.carry_usage_from(previous)
            previous.destroy()
        self._context = reduced
        self._session = session
        logger.info(f"Reduced context to {reduced.chunk_count} chunks (~{reduced.token_estimate} tokens)")
        return True

    def get_capabilities(self) -> ProviderCapabilities:
        return self._descriptor.capabilities.model_copy()

    def can_continue(self) -> bool:
        if self._destroyed:
            return False
        if self._session is None or not self._session.get_history():
            return True  # not started yet, can start
        return self._session.can_continue()

    def get_search_data(self) -> SearchResults | None:
        return self._search_data

    def get_model(self) -> dict[str, str]:
        return {"provider": self._provider, "model": self._model}

    def get_token_usage(self) -> TokenUsageReport:
        if self._session is not None:
            return self._session.get_token_usage()
        return TokenUsageReport(
            used=0,
            available=max(0, self._model_cfg.max_tokens - self._cushion),
            limit=self._model_cfg.max_tokens,
            turn_number=0,
        )

    def get_history(self) -> list[Turn]:
        if self._session is None:
            return []
        return self._session.get_history()

    def destroy(self) -> None:
        """Clean up. Idempotent."""
        self._destroyed = True
        self._teardown_conversation()
