# chuk_rag_session/exceptions.py
"""
Exception hierarchy for the RAG session layer.

Every error raised by this package derives from ``RagSessionError``. Backend
transport and runtime errors are never wrapped; they propagate unchanged.
"""

from __future__ import annotations


class RagSessionError(Exception):
    """Base class for all errors raised by chuk_rag_session."""


class ModelConfigError(RagSessionError):
    """No configuration entry exists for the requested provider/model."""

    def __init__(self, message: str, *, provider: str = "", model: str = ""):
        super().__init__(message)
        self.provider = provider
        self.model = model


class UnknownProviderError(RagSessionError):
    """The provider is not known to the capability registry or engine registry."""

    def __init__(self, provider: str):
        super().__init__(f"Unknown LLM provider: {provider}")
        self.provider = provider


class QueryTooLongError(RagSessionError):
    """The query plus fixed prompt overhead leaves no room for any context."""

    def __init__(self, query: str, *, query_tokens: int, max_tokens: int):
        preview = query if len(query) <= 80 else f"{query[:77]}..."
        super().__init__(f"Query is too long ({query_tokens} tokens, budget {max_tokens}): {preview}")
        self.query = query
        self.query_tokens = query_tokens
        self.max_tokens = max_tokens


class ConversationLimitError(RagSessionError):
    """The conversation has used up its token budget."""

    def __init__(self, message: str, *, tokens_used: int, tokens_limit: int):
        super().__init__(message)
        self.tokens_used = tokens_used
        self.tokens_limit = tokens_limit


class SessionDestroyedError(RagSessionError):
    """An operation was attempted on a destroyed session."""

    def __init__(self, message: str = "Session destroyed"):
        super().__init__(message)


class SessionBusyError(RagSessionError):
    """A message was sent while another turn is still streaming."""

    def __init__(self, message: str = "A turn is already in flight for this session"):
        super().__init__(message)


class FollowUpNotSupportedError(RagSessionError):
    """A second message was sent to a single-turn-only backend."""

    def __init__(self, provider: str = "", model: str = ""):
        super().__init__(
            f"Follow-up questions are not supported by {provider}/{model}. "
            "Please start a new conversation or switch to a multi-turn model."
        )
        self.provider = provider
        self.model = model


class ConversationNotStartedError(RagSessionError):
    """A follow-up was requested before any conversation was started."""

    def __init__(self, message: str = "No conversation started. Call start() first."):
        super().__init__(message)


class ProviderUnavailableError(RagSessionError):
    """The backend cannot currently serve requests."""

    def __init__(self, provider: str, model: str, reason: str, *, downloading: bool = False):
        super().__init__(f"{provider}/{model} not available: {reason}")
        self.provider = provider
        self.model = model
        self.reason = reason
        self.downloading = downloading
