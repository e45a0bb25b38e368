# chuk_rag_session/providers/registry.py
"""
Engine registry - per-(provider, model) backend instances owned by the host.

Backends can be expensive to initialise (model download, runtime warm-up), so
they are created once per key and shared read-only between sessions. The
registry is an explicit object passed to whoever needs it; tests substitute
fakes with ``register_engine``.

Initialisation progress is published on a per-key ``ProgressChannel`` that
any number of callers can iterate:

```python
async for update in engines.progress("local_openai", model):
    print(update.text, update.progress)
```
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Protocol

from chuk_rag_session.exceptions import UnknownProviderError
from chuk_rag_session.models.events import LoadProgress

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Handed to engine factories to publish initialisation progress."""

    def __call__(self, text: str, progress: float | None = None, error: str | None = None) -> None: ...


EngineFactory = Callable[[str, ProgressReporter], Awaitable[Any]]

EngineKey = tuple[str, str]


class ProgressChannel:
    """Fan-out of ``LoadProgress`` updates for one engine key."""

    def __init__(self, provider: str, model: str):
        self.provider = provider
        self.model = model
        self._subscribers: list[asyncio.Queue[LoadProgress | None]] = []
        self._latest: LoadProgress | None = None
        self._closed = False

    @property
    def latest(self) -> LoadProgress | None:
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, update: LoadProgress) -> None:
        self._latest = update
        for queue in self._subscribers:
            queue.put_nowait(update)

    def report(self, text: str, progress: float | None = None, error: str | None = None) -> None:
        self.publish(
            LoadProgress(
                provider=self.provider,
                model=self.model,
                text=text,
                progress=progress,
                error=error,
            )
        )

    def close(self) -> None:
        """End every subscription once queued updates are drained."""
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(None)

    def subscribe(self) -> AsyncIterator[LoadProgress]:
        """
        Iterate updates from now on, starting with the latest one if any.

        The subscription is registered immediately; breaking out of the loop
        (or closing the iterator) unsubscribes.
        """
        queue: asyncio.Queue[LoadProgress | None] = asyncio.Queue()
        if self._latest is not None:
            queue.put_nowait(self._latest)
        if self._closed:
            queue.put_nowait(None)
        else:
            self._subscribers.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue[LoadProgress | None]) -> AsyncIterator[LoadProgress]:
        try:
            while True:
                update = await queue.get()
                if update is None:
                    return
                yield update
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)


class EngineRegistry:
    """Lazily created, shared backend engines keyed by ``(provider, model)``."""

    def __init__(self) -> None:
        self._factories: dict[str, EngineFactory] = {}
        self._engines: dict[EngineKey, Any] = {}
        self._pending: dict[EngineKey, asyncio.Future[Any]] = {}
        self._channels: dict[EngineKey, ProgressChannel] = {}

    def register_factory(self, provider: str, factory: EngineFactory) -> None:
        self._factories[provider] = factory

    def register_engine(self, provider: str, model: str, engine: Any) -> None:
        """Install an already-built engine (e.g. a fake in tests)."""
        key = (provider, model)
        self._engines[key] = engine
        channel = self._channel(key)
        channel.report("Ready", 1.0)
        channel.close()

    def _channel(self, key: EngineKey) -> ProgressChannel:
        channel = self._channels.get(key)
        if channel is None:
            channel = ProgressChannel(*key)
            self._channels[key] = channel
        return channel

    def progress(self, provider: str, model: str) -> AsyncIterator[LoadProgress]:
        """Subscribe to initialisation progress for an engine."""
        return self._channel((provider, model)).subscribe()

    async def get_engine(self, provider: str, model: str) -> Any:
        """Return the engine for ``(provider, model)``, creating it once."""
        key = (provider, model)
        if key in self._engines:
            return self._engines[key]

        future = self._pending.get(key)
        if future is None:
            factory = self._factories.get(provider)
            if factory is None:
                raise UnknownProviderError(provider)
            future = asyncio.ensure_future(self._create(key, factory))
            self._pending[key] = future

        # Shielded so one cancelled caller does not abort creation for the others
        return await asyncio.shield(future)

    async def _create(self, key: EngineKey, factory: EngineFactory) -> Any:
        provider, model = key
        channel = self._channel(key)
        channel.report("Initializing", 0.0)
        logger.info(f"Creating engine for {provider}/{model}")
        try:
            engine = await factory(model, channel.report)
        except Exception as e:
            logger.warning(f"Engine creation failed for {provider}/{model}: {e}")
            channel.report("Failed", error=str(e))
            channel.close()
            # Not cached, so a later call retries with a fresh channel
            self._channels.pop(key, None)
            raise
        finally:
            self._pending.pop(key, None)

        self._engines[key] = engine
        latest = channel.latest
        if latest is None or not latest.finished:
            channel.report("Ready", 1.0)
        channel.close()
        return engine

    def is_cached(self, provider: str, model: str) -> bool:
        return (provider, model) in self._engines

    def evict(self, provider: str, model: str) -> bool:
        """Drop a cached engine; the next ``get_engine`` creates a new one."""
        key = (provider, model)
        self._channels.pop(key, None)
        return self._engines.pop(key, None) is not None

    def clear(self) -> None:
        self._engines.clear()
        self._channels.clear()
