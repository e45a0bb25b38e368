# chuk_rag_session/models/events.py
"""Streaming protocol events and engine load progress."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from chuk_rag_session.base_models import DictCompatModel
from chuk_rag_session.models.enums import EventKind


class StreamEvent(DictCompatModel):
    """One ``{type, message}`` event of a streamed turn."""

    type: EventKind
    message: Any = None

    @classmethod
    def data(cls, text: str) -> StreamEvent:
        return cls(type=EventKind.DATA, message=text)

    @classmethod
    def finish_reason(cls, reason: str) -> StreamEvent:
        return cls(type=EventKind.FINISH_REASON, message=reason)

    @classmethod
    def usage(cls, details: Any) -> StreamEvent:
        return cls(type=EventKind.USAGE, message=details)

    @classmethod
    def done(cls) -> StreamEvent:
        return cls(type=EventKind.DONE, message=None)


class LoadProgress(BaseModel):
    """Engine initialisation/download progress update."""

    provider: str
    model: str
    text: str = ""
    progress: float | None = Field(default=None, ge=0.0, le=1.0)
    error: str | None = None

    @property
    def finished(self) -> bool:
        return self.error is not None or (self.progress is not None and self.progress >= 1.0)
