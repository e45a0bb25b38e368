# tests/conftest.py
"""
Shared pytest fixtures and configuration for chuk_rag_session tests.
"""

import logging

import pytest

from chuk_rag_session.config import SessionSettings
from chuk_rag_session.models import DedupMode
from chuk_rag_session.providers import EngineRegistry

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("chuk_rag_session").setLevel(logging.DEBUG)


@pytest.fixture
def settings():
    """Settings pinned independently of the environment."""
    return SessionSettings(
        token_cushion=10000,
        min_tokens_for_exchange=500,
        min_context_chunks=2,
        max_output_tokens=1024,
        throw_on_token_limit=True,
        dedup_mode=DedupMode.SKIP,
    )


@pytest.fixture
def engines():
    return EngineRegistry()
