# chuk_rag_session/__init__.py
"""
CHUK RAG Session - conversational session layer for retrieval-augmented chat.

Quick Start:
    from chuk_rag_session import ChatSession, EngineRegistry, openai_engine_factory

    engines = EngineRegistry()
    engines.register_factory("local_openai", openai_engine_factory())

    chat = ChatSession("local_openai", model, search=search, resolver=search, engines=engines)
    async for event in chat.start("What is composable commerce?"):
        if event.type == "data":
            print(event.message, end="")

Lower level:
    from chuk_rag_session import ContextBuilder, create_conversation_session

    context = await ContextBuilder(resolver).build(chunks, query, model_max_tokens=4096, cushion=512)
    session = await create_conversation_session("local_openai", model, engines=engines, context=context)
    async for event in session.send_message(query):
        ...
"""

from chuk_rag_session.capabilities import CapabilityRegistry, ProviderProfile, default_registry
from chuk_rag_session.chat_session import ChatSession, SearchClient
from chuk_rag_session.config import ModelConfig, SessionSettings, get_model_cfg, list_models, register_model
from chuk_rag_session.context_builder import ContextBuilder, PassageResolver
from chuk_rag_session.conversation_session import ConversationSession, create_conversation_session
from chuk_rag_session.exceptions import (
    ConversationLimitError,
    ConversationNotStartedError,
    FollowUpNotSupportedError,
    ModelConfigError,
    ProviderUnavailableError,
    QueryTooLongError,
    RagSessionError,
    SessionBusyError,
    SessionDestroyedError,
    UnknownProviderError,
)
from chuk_rag_session.models import (
    ContextBuildResult,
    DedupMode,
    EventKind,
    LoadProgress,
    ProviderCapabilities,
    ProviderFamily,
    ReferenceChunk,
    SearchFilters,
    SearchResults,
    StreamEvent,
    TokenUsageReport,
    Turn,
    UsageDetails,
)
from chuk_rag_session.policies import CumulativeWindowPolicy, RefreshedWindowPolicy, WindowPolicy
from chuk_rag_session.providers import EngineRegistry, OpenAICompatibleBackend, build_adapter, openai_engine_factory
from chuk_rag_session.tokens import estimate_tokens

__version__ = "0.3.0"


def get_version() -> str:
    return __version__


__all__ = [
    "CapabilityRegistry",
    "ChatSession",
    "ContextBuildResult",
    "ContextBuilder",
    "ConversationLimitError",
    "ConversationNotStartedError",
    "ConversationSession",
    "CumulativeWindowPolicy",
    "DedupMode",
    "EngineRegistry",
    "EventKind",
    "FollowUpNotSupportedError",
    "LoadProgress",
    "ModelConfig",
    "ModelConfigError",
    "OpenAICompatibleBackend",
    "PassageResolver",
    "ProviderCapabilities",
    "ProviderFamily",
    "ProviderProfile",
    "ProviderUnavailableError",
    "QueryTooLongError",
    "RagSessionError",
    "ReferenceChunk",
    "RefreshedWindowPolicy",
    "SearchClient",
    "SearchFilters",
    "SearchResults",
    "SessionBusyError",
    "SessionDestroyedError",
    "SessionSettings",
    "StreamEvent",
    "TokenUsageReport",
    "Turn",
    "UnknownProviderError",
    "UsageDetails",
    "WindowPolicy",
    "build_adapter",
    "create_conversation_session",
    "default_registry",
    "estimate_tokens",
    "get_model_cfg",
    "get_version",
    "list_models",
    "register_model",
]
