# chuk_rag_session/models/usage.py
"""Token usage reporting models."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from chuk_rag_session.base_models import DictCompatModel
from chuk_rag_session.models.context import ContextTokens


class TokenUsageReport(DictCompatModel):
    """
    Per-turn snapshot handed back to the caller.

    For stateless-replay backends ``used`` is the last turn's reported tokens
    and ``available`` is the refreshed window; for stateful backends both are
    cumulative.
    """

    used: int = 0
    available: int = 0
    limit: int = 0
    turn_number: int = 0


class TurnUsage(DictCompatModel):
    """Token figures an adapter reports for a single call."""

    input_tokens: int = 0
    output_tokens: int = 0
    cumulative_input_tokens: int | None = Field(
        default=None,
        description="Runtime-side cumulative input counter, for backends that keep state",
    )
    input_quota: int | None = None
    estimated: bool = Field(default=False, description="True when figures come from the local estimator")
    estimated_context_tokens: int | None = Field(
        default=None,
        description="Locally-estimated size of the full prompt; informational only",
    )
    prompt: list[dict[str, str]] = Field(default_factory=list)


class UsageDetails(DictCompatModel):
    """Payload of the terminal ``usage`` event."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    used: int = 0
    available: int = 0
    limit: int = 0
    turn_number: int = 0
    input_quota: int | None = None
    estimated: bool = False
    estimated_context_tokens: int | None = None
    estimated_context_informational: bool = False
    context_tokens: ContextTokens | None = None
    prompt: list[dict[str, str]] = Field(default_factory=list)
    context: str = ""
    elapsed: dict[str, Any] | None = None
