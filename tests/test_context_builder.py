# tests/test_context_builder.py
"""
Tests for ContextBuilder.

Covers:
- Budget adherence and rank-order prefix admission
- Query-too-long rejection
- Skip / combine / duplicate handling of repeated sources
- Entry caps and the reduction floor
"""

import pytest
from fakes import FakeResolver, make_chunk, words

from chuk_rag_session.context_builder import COMBINE_SEPARATOR, ContextBuilder
from chuk_rag_session.exceptions import QueryTooLongError
from chuk_rag_session.models import DedupMode
from chuk_rag_session.tokens import estimate_tokens


def make_builder(passages=None, default=words(55), base_tokens=100, min_context_chunks=2):
    resolver = FakeResolver(passages, default=default)
    return ContextBuilder(resolver, base_tokens=base_tokens, min_context_chunks=min_context_chunks), resolver


class TestBudget:
    @pytest.mark.asyncio
    async def test_admits_until_budget(self):
        builder, _ = make_builder()
        chunks = [make_chunk(f"https://example.com/{i}") for i in range(10)]

        result = await builder.build(chunks, "q", model_max_tokens=1000, cushion=0)

        # 100 base + 2 query, then 100 per chunk
        assert result.chunk_count == 8
        assert len(result.used_chunks) == 8
        assert result.token_estimate == 900
        assert result.token_estimate + result.query_tokens <= 1000

    @pytest.mark.asyncio
    async def test_stops_at_first_overflow(self):
        passages = {
            "a": words(55),
            "b": words(55),
            "c": words(550),
            "d": words(5),
        }
        builder, _ = make_builder(passages)
        chunks = [make_chunk(s) for s in ("a", "b", "c", "d")]

        result = await builder.build(chunks, "q", model_max_tokens=500, cushion=100)

        # "d" would fit on its own but comes after the overflowing chunk
        assert [c.source_id for c in result.used_chunks] == ["a", "b"]
        assert "<URL>d</URL>" not in result.context_text

    @pytest.mark.asyncio
    async def test_preserves_rank_order(self):
        builder, _ = make_builder(default=words(3))
        chunks = [make_chunk(s) for s in ("z", "m", "a")]

        result = await builder.build(chunks, "q", model_max_tokens=10000, cushion=0)

        text = result.context_text
        assert text.index("<URL>z</URL>") < text.index("<URL>m</URL>") < text.index("<URL>a</URL>")

    @pytest.mark.asyncio
    async def test_empty_chunks(self):
        builder, _ = make_builder()

        result = await builder.build([], "q", model_max_tokens=1000, cushion=0)

        assert result.context_text == ""
        assert result.chunk_count == 0
        assert result.token_estimate == 100
        assert result.query_tokens == 2

    @pytest.mark.asyncio
    async def test_context_tokens_breakdown(self):
        builder, _ = make_builder()
        chunks = [make_chunk("a"), make_chunk("b")]

        result = await builder.build(chunks, "two words", model_max_tokens=1000, cushion=0)
        breakdown = result.context_tokens()

        assert breakdown["base_prompt_tokens"] == 100
        assert breakdown["chunks_tokens"] == 200
        assert breakdown["query_tokens"] == estimate_tokens("two words")
        assert breakdown["chunk_count"] == 2
        assert breakdown["total_tokens"] == 300 + estimate_tokens("two words")
        assert result.context_tokens(query_tokens=0).total_tokens == 300


class TestQueryTooLong:
    @pytest.mark.asyncio
    async def test_raises_when_base_and_query_exceed_budget(self):
        builder, resolver = make_builder()
        query = words(100)

        with pytest.raises(QueryTooLongError) as exc_info:
            await builder.build([make_chunk("a")], query, model_max_tokens=200, cushion=0)

        assert exc_info.value.query_tokens == estimate_tokens(query)
        assert exc_info.value.max_tokens == 200
        assert resolver.calls == []

    @pytest.mark.asyncio
    async def test_cushion_counts_against_budget(self):
        builder, _ = make_builder()

        with pytest.raises(QueryTooLongError):
            await builder.build([], "q", model_max_tokens=1000, cushion=950)


class TestMarkup:
    @pytest.mark.asyncio
    async def test_single_chunk_format(self):
        builder, _ = make_builder({"https://a": "alpha beta"})

        result = await builder.build([make_chunk("https://a")], "q", model_max_tokens=1000, cushion=0)

        assert result.context_text == "<CHUNK><URL>https://a</URL><CONTENT>alpha beta</CONTENT></CHUNK>"

    @pytest.mark.asyncio
    async def test_entries_joined_by_newline(self):
        builder, _ = make_builder({"a": "one", "b": "two"})

        result = await builder.build([make_chunk("a"), make_chunk("b")], "q", model_max_tokens=1000, cushion=0)

        assert result.context_text == (
            "<CHUNK><URL>a</URL><CONTENT>one</CONTENT></CHUNK>\n<CHUNK><URL>b</URL><CONTENT>two</CONTENT></CHUNK>"
        )


class TestDedupModes:
    def _chunks(self):
        return [make_chunk("a", start=0), make_chunk("b", start=0), make_chunk("a", start=200)]

    def _passages(self):
        return {("a", 0): "first part", ("a", 200): "second part", "b": "other"}

    @pytest.mark.asyncio
    async def test_skip_ignores_repeated_source(self):
        builder, resolver = make_builder(self._passages())

        result = await builder.build(self._chunks(), "q", model_max_tokens=1000, cushion=0, dedup_mode=DedupMode.SKIP)

        assert result.chunk_count == 2
        assert len(result.used_chunks) == 2
        assert "second part" not in result.context_text
        # repeated source is not even resolved
        assert ("a", 200, 100) not in resolver.calls

    @pytest.mark.asyncio
    async def test_combine_merges_into_one_entry(self):
        builder, _ = make_builder(self._passages())

        result = await builder.build(
            self._chunks(), "q", model_max_tokens=1000, cushion=0, dedup_mode=DedupMode.COMBINE
        )

        assert result.chunk_count == 2
        assert len(result.used_chunks) == 3
        assert result.context_text.count("<URL>a</URL>") == 1
        assert f"first part{COMBINE_SEPARATOR}second part" in result.context_text

    @pytest.mark.asyncio
    async def test_duplicate_adds_independent_entries(self):
        builder, _ = make_builder(self._passages())

        result = await builder.build(
            self._chunks(), "q", model_max_tokens=1000, cushion=0, dedup_mode=DedupMode.DUPLICATE
        )

        assert result.chunk_count == 3
        assert result.context_text.count("<URL>a</URL>") == 2

    @pytest.mark.asyncio
    async def test_combine_respects_budget(self):
        passages = {("a", 0): words(55), ("a", 200): words(550)}
        builder, _ = make_builder(passages)
        chunks = [make_chunk("a", start=0), make_chunk("a", start=200)]

        result = await builder.build(chunks, "q", model_max_tokens=500, cushion=0, dedup_mode=DedupMode.COMBINE)

        assert len(result.used_chunks) == 1
        assert COMBINE_SEPARATOR not in result.context_text


class TestLimits:
    @pytest.mark.asyncio
    async def test_max_chunks_caps_entries(self):
        builder, _ = make_builder(default=words(3))
        chunks = [make_chunk(str(i)) for i in range(5)]

        result = await builder.build(chunks, "q", model_max_tokens=10000, cushion=0, max_chunks=2)

        assert result.chunk_count == 2
        assert [c.source_id for c in result.used_chunks] == ["0", "1"]

    @pytest.mark.asyncio
    async def test_max_chunks_still_combines_into_existing_entries(self):
        passages = {("a", 0): "x", ("a", 5): "y", "b": "z", "c": "w"}
        builder, _ = make_builder(passages)
        chunks = [make_chunk("a", start=0), make_chunk("b"), make_chunk("a", start=5), make_chunk("c")]

        result = await builder.build(
            chunks, "q", model_max_tokens=10000, cushion=0, dedup_mode=DedupMode.COMBINE, max_chunks=2
        )

        assert result.chunk_count == 2
        assert len(result.used_chunks) == 3
        assert "<URL>c</URL>" not in result.context_text

    @pytest.mark.asyncio
    async def test_rebuild_with_limit(self):
        builder, _ = make_builder(default=words(3))
        chunks = [make_chunk(str(i)) for i in range(6)]

        full = await builder.build(chunks, "q", model_max_tokens=10000, cushion=0)
        result = await builder.rebuild_with_limit(chunks, "q", 3, model_max_tokens=10000, cushion=0)

        assert result.chunk_count == 3
        assert result.used_chunks == full.used_chunks[:3]

    @pytest.mark.asyncio
    async def test_rebuild_never_goes_below_floor(self):
        builder, _ = make_builder(default=words(3), min_context_chunks=2)
        chunks = [make_chunk(str(i)) for i in range(6)]

        result = await builder.rebuild_with_limit(chunks, "q", 1, model_max_tokens=10000, cushion=0)

        assert result.chunk_count == 2
