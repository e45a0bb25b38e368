# tests/test_engine_registry.py
"""
Tests for EngineRegistry and its progress channels.
"""

import asyncio

import pytest

from chuk_rag_session.exceptions import UnknownProviderError
from chuk_rag_session.providers import EngineRegistry, OpenAICompatibleBackend, openai_engine_factory


def counting_factory(engine, *, steps=(), fail_first=False):
    calls = []

    async def factory(model, report):
        calls.append(model)
        for text, progress in steps:
            report(text, progress)
            await asyncio.sleep(0)
        if fail_first and len(calls) == 1:
            raise RuntimeError("boom")
        return engine

    return factory, calls


class TestEngineRegistry:
    @pytest.mark.asyncio
    async def test_register_engine(self):
        engines = EngineRegistry()
        engine = object()
        engines.register_engine("p", "m", engine)

        assert engines.is_cached("p", "m")
        assert await engines.get_engine("p", "m") is engine

    @pytest.mark.asyncio
    async def test_created_once_for_concurrent_callers(self):
        engines = EngineRegistry()
        engine = object()
        factory, calls = counting_factory(engine, steps=[("Loading", 0.5)])
        engines.register_factory("p", factory)

        first, second = await asyncio.gather(engines.get_engine("p", "m"), engines.get_engine("p", "m"))

        assert first is engine and second is engine
        assert calls == ["m"]

    @pytest.mark.asyncio
    async def test_one_engine_per_model(self):
        engines = EngineRegistry()
        factory, calls = counting_factory(object())
        engines.register_factory("p", factory)

        await engines.get_engine("p", "a")
        await engines.get_engine("p", "b")
        await engines.get_engine("p", "a")

        assert calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError):
            await EngineRegistry().get_engine("nope", "m")

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        engines = EngineRegistry()
        engine = object()
        factory, calls = counting_factory(engine, fail_first=True)
        engines.register_factory("p", factory)

        with pytest.raises(RuntimeError, match="boom"):
            await engines.get_engine("p", "m")
        assert not engines.is_cached("p", "m")

        assert await engines.get_engine("p", "m") is engine
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_evict(self):
        engines = EngineRegistry()
        factory, calls = counting_factory(object())
        engines.register_factory("p", factory)
        await engines.get_engine("p", "m")

        assert engines.evict("p", "m") is True
        assert engines.evict("p", "m") is False
        await engines.get_engine("p", "m")
        assert len(calls) == 2


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_updates(self):
        engines = EngineRegistry()
        factory, _ = counting_factory(object(), steps=[("Downloading", 0.5)])
        engines.register_factory("p", factory)

        stream = engines.progress("p", "m")
        watcher = asyncio.create_task(_gather(stream))
        await engines.get_engine("p", "m")
        updates = await watcher

        assert [u.text for u in updates] == ["Initializing", "Downloading", "Ready"]
        assert [u.progress for u in updates] == [0.0, 0.5, 1.0]
        assert updates[-1].finished
        assert {(u.provider, u.model) for u in updates} == {("p", "m")}

    @pytest.mark.asyncio
    async def test_many_subscribers(self):
        engines = EngineRegistry()
        factory, _ = counting_factory(object(), steps=[("Downloading", 0.5)])
        engines.register_factory("p", factory)

        watchers = [asyncio.create_task(_gather(engines.progress("p", "m"))) for _ in range(3)]
        await engines.get_engine("p", "m")
        results = await asyncio.gather(*watchers)

        assert all([u.text for u in r] == ["Initializing", "Downloading", "Ready"] for r in results)

    @pytest.mark.asyncio
    async def test_late_subscriber_gets_latest(self):
        engines = EngineRegistry()
        engines.register_engine("p", "m", object())

        updates = await _gather(engines.progress("p", "m"))

        assert [u.text for u in updates] == ["Ready"]

    @pytest.mark.asyncio
    async def test_failure_reported(self):
        engines = EngineRegistry()
        factory, _ = counting_factory(object(), fail_first=True)
        engines.register_factory("p", factory)

        watcher = asyncio.create_task(_gather(engines.progress("p", "m")))
        with pytest.raises(RuntimeError):
            await engines.get_engine("p", "m")
        updates = await watcher

        assert updates[-1].error == "boom"
        assert updates[-1].finished


class TestOpenAIEngineFactory:
    @pytest.mark.asyncio
    async def test_creates_backend(self):
        engines = EngineRegistry()
        engines.register_factory("local_openai", openai_engine_factory(base_url="http://localhost:1234/v1", api_key="k"))

        backend = await engines.get_engine("local_openai", "tiny")

        assert isinstance(backend, OpenAICompatibleBackend)
        assert backend.model == "tiny"


async def _gather(stream):
    return [update async for update in stream]
