# chuk_rag_session/models/context.py
"""Context assembly results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from chuk_rag_session.base_models import DictCompatModel
from chuk_rag_session.models.reference import ReferenceChunk


class ContextTokens(DictCompatModel):
    """Developer-facing breakdown of where prompt tokens go."""

    base_prompt_tokens: int = 0
    chunks_tokens: int = 0
    query_tokens: int = 0
    chunk_count: int = 0
    total_tokens: int = 0


class ContextBuildResult(BaseModel):
    """
    The assembled, budget-respecting context.

    ``token_estimate`` covers the base prompts plus the admitted passages;
    the query is accounted separately in ``query_tokens``. Instances are
    immutable; context reduction produces a new one.
    """

    model_config = ConfigDict(frozen=True)

    context_text: str = ""
    used_chunks: tuple[ReferenceChunk, ...] = Field(default_factory=tuple)
    chunk_count: int = Field(default=0, description="Number of context entries (<CHUNK> blocks)")
    token_estimate: int = 0
    base_prompt_tokens: int = 0
    chunks_tokens: int = 0
    query_tokens: int = 0

    def context_tokens(self, query_tokens: int | None = None) -> ContextTokens:
        """Breakdown for a usage event, optionally with a different query."""
        if query_tokens is None:
            query_tokens = self.query_tokens
        return ContextTokens(
            base_prompt_tokens=self.base_prompt_tokens,
            chunks_tokens=self.chunks_tokens,
            query_tokens=query_tokens,
            chunk_count=self.chunk_count,
            total_tokens=self.base_prompt_tokens + self.chunks_tokens + query_tokens,
        )
