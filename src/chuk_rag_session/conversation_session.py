# chuk_rag_session/conversation_session.py
"""
ConversationSession - one coherent multi-turn session over any backend.

This module provides the ConversationSession class which offers:
- A single ``send_message`` entry point streaming normalised events
- Turn history with two-phase commit (rollback on any failure)
- Per-turn and cumulative token accounting via a window policy
- Capacity checks before each turn
- Explicit, idempotent teardown of provider-side handles
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing

from chuk_rag_session.capabilities import CapabilityRegistry, default_registry
from chuk_rag_session.config import DEFAULT_TEMPERATURE, ModelConfig, SessionSettings, get_model_cfg
from chuk_rag_session.exceptions import (
    ConversationLimitError,
    QueryTooLongError,
    SessionBusyError,
    SessionDestroyedError,
)
from chuk_rag_session.models.capabilities import ProviderCapabilities, ProviderDescriptor
from chuk_rag_session.models.context import ContextBuildResult, ContextTokens
from chuk_rag_session.models.enums import EventKind, ProviderFamily, SessionState
from chuk_rag_session.models.events import StreamEvent
from chuk_rag_session.models.turn import Turn
from chuk_rag_session.models.turn_log import LogEntry, TurnLog
from chuk_rag_session.models.usage import TokenUsageReport, TurnUsage, UsageDetails
from chuk_rag_session.policies import WindowPolicy, WindowSnapshot, default_policy_for
from chuk_rag_session.prompts import BASE_TOKEN_ESTIMATE
from chuk_rag_session.providers import EngineRegistry, build_adapter
from chuk_rag_session.providers.base import BackendAdapter, SessionHandle, TurnRequest
from chuk_rag_session.tokens import estimate_tokens, has_chunk_markup

logger = logging.getLogger(__name__)

LIMIT_MESSAGE = "This conversation has reached its token limit. Please start a new conversation."


class ConversationSession:
    """
    Multi-turn conversation over a single backend adapter.

    States are ``CREATED -> ACTIVE -> DESTROYED``. Exactly one turn may be in
    flight; a concurrent ``send_message`` raises ``SessionBusyError`` instead
    of queueing, so caller bugs stay visible.

    Examples:
        ```python
        session = await create_conversation_session(
            "local_openai", model, engines=engines, context=context_result
        )
        async for event in session.send_message("What is composable commerce?"):
            if event.type == "data":
                print(event.message, end="")
        print(session.get_token_usage())
        session.destroy()
        ```
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        adapter: BackendAdapter,
        model_cfg: ModelConfig,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        context: ContextBuildResult | str = "",
        settings: SessionSettings | None = None,
        window_policy: WindowPolicy | None = None,
        history: list[Turn] | None = None,
        session_id: str | None = None,
    ):
        """
        Initialize a ConversationSession.

        Args:
            descriptor: Provider family and capabilities, resolved once.
            adapter: Adapter matching the descriptor's family.
            model_cfg: Model window and cushion.
            temperature: Sampling temperature for every call.
            context: Base context, either a build result or raw context text.
            settings: Session tunables; defaults come from the environment.
            window_policy: Override for the family's default budget policy.
            history: Already-committed turns to seed the session with.
            session_id: Optional ID; generated when omitted.
        """
        self._session_id = session_id or str(uuid.uuid4())
        self._descriptor = descriptor
        self._adapter = adapter
        self._model_cfg = model_cfg
        self._temperature = temperature
        self._settings = settings or SessionSettings()
        self._cushion = self._settings.cushion_for(model_cfg)

        if isinstance(context, ContextBuildResult):
            self._context_result: ContextBuildResult | None = context
            self._context_text = context.context_text
            self._context_estimate = context.token_estimate
        else:
            self._context_result = None
            self._context_text = context
            self._context_estimate = BASE_TOKEN_ESTIMATE + estimate_tokens(
                context, has_markup=has_chunk_markup(context)
            )

        self._policy = window_policy or default_policy_for(
            descriptor.family,
            cushion=self._cushion,
            min_tokens_for_exchange=self._settings.min_tokens_for_exchange,
            reserved_response_buffer=self._settings.max_output_tokens,
        )

        self._log = TurnLog()
        if history:
            self._log.reset(history)

        self._state = SessionState.CREATED
        self._in_flight = False

        # Token counters
        self._total_input = 0
        self._total_output = 0
        self._last_turn_tokens = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def provider(self) -> str:
        return self._descriptor.provider

    @property
    def model(self) -> str:
        return self._descriptor.model

    @property
    def family(self) -> ProviderFamily:
        return self._descriptor.family

    @property
    def temperature(self) -> float:
        return self._temperature

    @property
    def context(self) -> str:
        """Base context text the session was seeded with."""
        return self._context_text

    @property
    def context_result(self) -> ContextBuildResult | None:
        return self._context_result

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def destroyed(self) -> bool:
        return self._state == SessionState.DESTROYED

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def window_policy(self) -> WindowPolicy:
        return self._policy

    @property
    def provider_handle(self) -> SessionHandle | None:
        """Runtime-side handle, only for stateful backends that keep one."""
        return self._adapter.handle

    @property
    def cumulative_tokens(self) -> int:
        return self._total_input + self._total_output

    @property
    def per_turn_tokens(self) -> int:
        return self._last_turn_tokens

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_capabilities(self) -> ProviderCapabilities:
        return self._descriptor.capabilities.model_copy()

    def get_history(self) -> list[Turn]:
        """Committed turns only; a copy the caller may mutate freely."""
        return self._log.committed()

    def get_turn_log(self) -> list[LogEntry]:
        """Every recorded attempt, including rolled-back ones."""
        return self._log.entries()

    def _snapshot(self) -> WindowSnapshot:
        return WindowSnapshot(
            limit=self._model_cfg.max_tokens,
            cumulative_tokens=self.cumulative_tokens,
            last_turn_tokens=self._last_turn_tokens,
        )

    def get_token_usage(self) -> TokenUsageReport:
        snapshot = self._snapshot()
        return TokenUsageReport(
            used=self._policy.used(snapshot),
            available=self._policy.available(snapshot),
            limit=snapshot.limit,
            turn_number=self._adapter.turn_number(self._log.visible_length()),
        )

    def carry_usage_from(self, previous: ConversationSession) -> None:
        """Continue the token counters of a session this one replaces."""
        self._total_input = previous._total_input
        self._total_output = previous._total_output
        self._last_turn_tokens = previous._last_turn_tokens

    def can_continue(self) -> bool:
        """Whether another turn is permitted."""
        if self.destroyed:
            return False
        if self._descriptor.single_turn and len(self._log) > 0:
            return False
        return self._policy.can_continue(self._snapshot())

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def _check_capacity(self, user_text: str) -> None:
        if len(self._log) == 0:
            # Nothing sent yet: the context plus query must fit the budget
            query_tokens = estimate_tokens(user_text)
            budget = self._model_cfg.max_tokens - self._cushion
            if self._context_estimate + query_tokens > budget:
                raise QueryTooLongError(user_text, query_tokens=query_tokens, max_tokens=budget)

        if self.can_continue():
            return

        usage = self.get_token_usage()
        if self._settings.throw_on_token_limit:
            raise ConversationLimitError(LIMIT_MESSAGE, tokens_used=usage.used, tokens_limit=usage.limit)
        logger.warning(f"{LIMIT_MESSAGE} (session {self._session_id}, used={usage.used}, limit={usage.limit})")

    def _context_tokens(self, user_text: str) -> ContextTokens | None:
        if self._context_result is None:
            return None
        return self._context_result.context_tokens(estimate_tokens(user_text))

    def _record_usage(self, turn_usage: TurnUsage, user_text: str) -> UsageDetails:
        """Fold an adapter's figures into the session counters."""
        if turn_usage.cumulative_input_tokens is not None:
            self._total_input = turn_usage.cumulative_input_tokens
        else:
            self._total_input += turn_usage.input_tokens
        self._total_output += turn_usage.output_tokens
        self._last_turn_tokens = turn_usage.input_tokens + turn_usage.output_tokens

        snapshot = self._snapshot()
        turn_number = self._adapter.turn_number(self._log.visible_length())
        details = UsageDetails(
            input_tokens=turn_usage.input_tokens,
            output_tokens=turn_usage.output_tokens,
            total_input_tokens=self._total_input,
            total_output_tokens=self._total_output,
            total_tokens=self.cumulative_tokens,
            used=self._policy.used(snapshot),
            available=self._policy.available(snapshot),
            limit=snapshot.limit,
            turn_number=turn_number,
            input_quota=turn_usage.input_quota,
            estimated=turn_usage.estimated,
            estimated_context_tokens=turn_usage.estimated_context_tokens,
            estimated_context_informational=self.family == ProviderFamily.STATELESS_REPLAY,
            context_tokens=self._context_tokens(user_text),
            prompt=turn_usage.prompt,
            context=self._context_text,
        )
        logger.debug(
            f"Session {self._session_id} turn {turn_number}: in={details.input_tokens} "
            f"out={details.output_tokens} used={details.used} available={details.available}"
        )
        return details

    async def send_message(self, user_text: str) -> AsyncIterator[StreamEvent]:
        """
        Send a user message and stream the reply.

        Yields ``data`` deltas, at most one ``finishReason``, one ``usage``
        and finally ``done`` once the exchange is committed to history. Any
        error rolls back the user turn and is re-raised unchanged.

        Raises:
            SessionDestroyedError: the session was destroyed.
            SessionBusyError: another turn is still streaming.
            FollowUpNotSupportedError: second message to a single-turn backend.
            QueryTooLongError: the first message does not fit with the context.
            ConversationLimitError: the budget is exhausted (when configured to throw).
            ProviderUnavailableError: the backend cannot serve requests.
        """
        if self.destroyed:
            raise SessionDestroyedError()
        if self._in_flight:
            raise SessionBusyError()

        self._in_flight = True
        self._state = SessionState.ACTIVE
        seq = self._log.begin(Turn.user(user_text))
        try:
            self._adapter.check_follow_up(len(self._log))
            self._check_capacity(user_text)

            request = TurnRequest(
                user_text=user_text,
                history=self._log.committed(),
                context=self._context_text,
                temperature=self._temperature,
                max_output_tokens=self._settings.max_output_tokens,
            )

            parts: list[str] = []
            async with aclosing(self._adapter.send(request)) as stream:
                async for event in stream:
                    if event.type == EventKind.DATA:
                        parts.append(event.message)
                        yield event
                    elif event.type == EventKind.USAGE:
                        yield StreamEvent.usage(self._record_usage(event.message, user_text))
                    else:
                        yield event

            self._log.commit(seq, Turn.assistant("".join(parts)))
        except BaseException:
            # Covers consumer aborts (GeneratorExit) and cancellation as well as errors
            self._log.rollback(seq)
            raise
        finally:
            self._in_flight = False

        yield StreamEvent.done()

    def destroy(self) -> None:
        """Release provider resources and refuse further messages. Idempotent."""
        if self._state == SessionState.DESTROYED:
            return
        self._state = SessionState.DESTROYED
        self._adapter.close()
        logger.info(f"Destroyed conversation session {self._session_id} ({self.provider}/{self.model})")


async def create_conversation_session(
    provider: str,
    model: str,
    *,
    engines: EngineRegistry,
    context: ContextBuildResult | str = "",
    temperature: float = DEFAULT_TEMPERATURE,
    capabilities: CapabilityRegistry | None = None,
    settings: SessionSettings | None = None,
    window_policy: WindowPolicy | None = None,
    history: list[Turn] | None = None,
    wait_for_download: bool = False,
) -> ConversationSession:
    """
    Resolve capabilities, fetch the engine and open a session.

    The capability registry is consulted here and nowhere else.
    """
    descriptor = (capabilities or default_registry()).describe(provider, model)
    model_cfg = get_model_cfg(provider, model)
    backend = await engines.get_engine(provider, model)
    adapter = build_adapter(descriptor, backend, wait_for_download=wait_for_download)
    logger.debug(
        f"Opening {descriptor.family.value} session for {provider}/{model} "
        f"(multi_turn={descriptor.capabilities.supports_multi_turn})"
    )
    return ConversationSession(
        descriptor,
        adapter,
        model_cfg,
        temperature=temperature,
        context=context,
        settings=settings,
        window_policy=window_policy,
        history=history,
    )
