# chuk_rag_session/models/__init__.py
"""
Data model for the RAG session layer.
"""

from chuk_rag_session.models.capabilities import ProviderCapabilities, ProviderDescriptor
from chuk_rag_session.models.context import ContextBuildResult, ContextTokens
from chuk_rag_session.models.enums import (
    Availability,
    DedupMode,
    EventKind,
    PromptRole,
    ProviderFamily,
    SessionState,
    TurnRole,
)
from chuk_rag_session.models.events import LoadProgress, StreamEvent
from chuk_rag_session.models.reference import ReferenceChunk, SearchFilters, SearchResults
from chuk_rag_session.models.turn import Turn
from chuk_rag_session.models.turn_log import EntryStatus, LogEntry, TurnLog
from chuk_rag_session.models.usage import TokenUsageReport, TurnUsage, UsageDetails

__all__ = [
    "Availability",
    "ContextBuildResult",
    "ContextTokens",
    "DedupMode",
    "EntryStatus",
    "EventKind",
    "LoadProgress",
    "LogEntry",
    "PromptRole",
    "ProviderCapabilities",
    "ProviderDescriptor",
    "ProviderFamily",
    "ReferenceChunk",
    "SearchFilters",
    "SearchResults",
    "SessionState",
    "StreamEvent",
    "TokenUsageReport",
    "Turn",
    "TurnLog",
    "TurnRole",
    "TurnUsage",
    "UsageDetails",
]
