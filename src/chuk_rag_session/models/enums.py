# chuk_rag_session/models/enums.py
"""Enums shared across the session layer."""

from enum import Enum


class TurnRole(str, Enum):
    """Author of a transcript entry."""

    USER = "user"
    ASSISTANT = "assistant"


class PromptRole(str, Enum):
    """Roles used in backend message arrays."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class DedupMode(str, Enum):
    """What to do with a chunk whose source is already in the context."""

    SKIP = "skip"  # ignore repeated sources
    COMBINE = "combine"  # append to the existing entry for that source
    DUPLICATE = "duplicate"  # add as an independent entry


class ProviderFamily(str, Enum):
    """How a backend keeps conversation state."""

    STATELESS_REPLAY = "stateless_replay"  # full history resent every call
    STATEFUL_SESSION = "stateful_session"  # runtime-side history on a handle


class EventKind(str, Enum):
    """Types of events in the streaming protocol."""

    SEARCH = "search"
    DATA = "data"
    FINISH_REASON = "finishReason"
    USAGE = "usage"
    DONE = "done"


class Availability(str, Enum):
    """Backend readiness as reported by on-device runtimes."""

    AVAILABLE = "available"
    DOWNLOADABLE = "downloadable"
    DOWNLOADING = "downloading"
    UNAVAILABLE = "unavailable"


class SessionState(str, Enum):
    """Lifecycle of a conversation session."""

    CREATED = "created"
    ACTIVE = "active"
    DESTROYED = "destroyed"
