# chuk_rag_session/context_builder.py
"""
Context Builder - turns ranked reference chunks into a bounded context blob.

Chunks arrive already rank-sorted from the search collaborator. Each admitted
chunk's passage text is resolved, wrapped in ``<CHUNK>`` markup and counted
against the token budget. Admission is chunk-granular: the first chunk that
would overflow the budget ends the build, and passages are never cut short.

Output format:
```
<CHUNK><URL>https://example.com/a</URL><CONTENT>passage text</CONTENT></CHUNK>
<CHUNK><URL>https://example.com/b</URL><CONTENT>first part

...

second part</CONTENT></CHUNK>
```
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from chuk_rag_session.config import MIN_CONTEXT_CHUNKS, TOKEN_CUSHION_CHAT
from chuk_rag_session.exceptions import QueryTooLongError
from chuk_rag_session.models.context import ContextBuildResult
from chuk_rag_session.models.enums import DedupMode
from chuk_rag_session.models.reference import ReferenceChunk
from chuk_rag_session.prompts import BASE_TOKEN_ESTIMATE
from chuk_rag_session.tokens import estimate_tokens

logger = logging.getLogger(__name__)

CHUNK_TEMPLATE = "<CHUNK><URL>{source}</URL><CONTENT>{content}</CONTENT></CHUNK>"
COMBINE_SEPARATOR = "\n\n...\n\n"


class PassageResolver(Protocol):
    """Resolves a chunk reference to its underlying passage text."""

    async def resolve_passage(self, source_id: str, start_offset: int, end_offset: int) -> str: ...


class _Entry:
    """One ``<CHUNK>`` block under construction."""

    __slots__ = ("source_id", "texts")

    def __init__(self, source_id: str, text: str):
        self.source_id = source_id
        self.texts = [text]

    def render(self) -> str:
        return CHUNK_TEMPLATE.format(source=self.source_id, content=COMBINE_SEPARATOR.join(self.texts))


class ContextBuilder:
    """
    Assembles budget-respecting context from ranked chunks.

    Args:
        resolver: Passage resolver supplied by the search collaborator.
        base_tokens: Fixed prompt overhead counted before any chunk.
        min_context_chunks: Floor applied by ``rebuild_with_limit``.
    """

    def __init__(
        self,
        resolver: PassageResolver,
        *,
        base_tokens: int = BASE_TOKEN_ESTIMATE,
        min_context_chunks: int = MIN_CONTEXT_CHUNKS,
    ):
        self._resolver = resolver
        self.base_tokens = base_tokens
        self.min_context_chunks = min_context_chunks

    async def build(
        self,
        chunks: Sequence[ReferenceChunk],
        query: str,
        model_max_tokens: int,
        cushion: int = TOKEN_CUSHION_CHAT,
        dedup_mode: DedupMode = DedupMode.SKIP,
        max_chunks: int | None = None,
    ) -> ContextBuildResult:
        """
        Build the context for ``query`` from ``chunks``.

        Args:
            chunks: Rank-sorted chunks; order is preserved.
            query: The user query the context is for.
            model_max_tokens: Model context window.
            cushion: Tokens held back for the response and overhead.
            dedup_mode: Policy for chunks whose source is already included.
            max_chunks: Optional cap on the number of context entries.

        Raises:
            QueryTooLongError: the base prompts and query alone exceed the budget.
        """
        max_context_tokens = model_max_tokens - cushion
        query_tokens = estimate_tokens(query)
        total_tokens = self.base_tokens + query_tokens
        if total_tokens > max_context_tokens:
            raise QueryTooLongError(query, query_tokens=query_tokens, max_tokens=max_context_tokens)

        entries: list[_Entry] = []
        by_source: dict[str, _Entry] = {}
        used: list[ReferenceChunk] = []
        chunks_tokens = 0

        for chunk in chunks:
            existing = by_source.get(chunk.source_id)
            if existing is not None and dedup_mode == DedupMode.SKIP:
                continue

            opens_entry = existing is None or dedup_mode == DedupMode.DUPLICATE
            if opens_entry and max_chunks is not None and len(entries) >= max_chunks:
                break

            text = await self._resolver.resolve_passage(chunk.source_id, chunk.start_offset, chunk.end_offset)
            chunk_tokens = estimate_tokens(text)

            if total_tokens + chunk_tokens > max_context_tokens:
                logger.debug(
                    f"Context budget reached at chunk {len(used) + 1}/{len(chunks)} "
                    f"({total_tokens} + {chunk_tokens} > {max_context_tokens})"
                )
                break

            total_tokens += chunk_tokens
            chunks_tokens += chunk_tokens
            used.append(chunk)

            if opens_entry:
                entry = _Entry(chunk.source_id, text)
                entries.append(entry)
                by_source.setdefault(chunk.source_id, entry)
            else:
                existing.texts.append(text)

        logger.debug(f"Built context: {len(entries)} entries from {len(used)} chunks, ~{total_tokens} tokens")

        return ContextBuildResult(
            context_text="\n".join(entry.render() for entry in entries),
            used_chunks=tuple(used),
            chunk_count=len(entries),
            token_estimate=self.base_tokens + chunks_tokens,
            base_prompt_tokens=self.base_tokens,
            chunks_tokens=chunks_tokens,
            query_tokens=query_tokens,
        )

    async def rebuild_with_limit(
        self,
        chunks: Sequence[ReferenceChunk],
        query: str,
        target_chunk_count: int,
        model_max_tokens: int,
        cushion: int = TOKEN_CUSHION_CHAT,
        dedup_mode: DedupMode = DedupMode.SKIP,
    ) -> ContextBuildResult:
        """Re-run ``build`` capped at ``max(target_chunk_count, min_context_chunks)`` entries."""
        limit = max(target_chunk_count, self.min_context_chunks)
        return await self.build(
            chunks,
            query,
            model_max_tokens,
            cushion=cushion,
            dedup_mode=dedup_mode,
            max_chunks=limit,
        )
