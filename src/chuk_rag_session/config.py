# chuk_rag_session/config.py
"""
Central configuration for the RAG session layer.

Module-level defaults can be overridden with environment variables (a ``.env``
file in the working directory is honoured). Per-session overrides go through
``SessionSettings`` so a running session never re-reads globals.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from chuk_rag_session.exceptions import ModelConfigError
from chuk_rag_session.models.enums import DedupMode

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Tokens held back from the context budget for the response and fixed overhead
TOKEN_CUSHION_CHAT = int(os.getenv("RAG_TOKEN_CUSHION", "10000"))

# Minimum tokens needed for a meaningful exchange (question + response)
MIN_TOKENS_FOR_EXCHANGE = int(os.getenv("RAG_MIN_TOKENS_FOR_EXCHANGE", "500"))

# Floor for context reduction
MIN_CONTEXT_CHUNKS = int(os.getenv("RAG_MIN_CONTEXT_CHUNKS", "2"))

# Response allowance passed to backends and reserved in refreshed-window accounting
MAX_OUTPUT_TOKENS = int(os.getenv("RAG_MAX_OUTPUT_TOKENS", "1024"))

# False turns ConversationLimitError into log-and-proceed (diagnostic builds)
THROW_ON_TOKEN_LIMIT = _env_bool("RAG_THROW_ON_TOKEN_LIMIT", True)

DEFAULT_TEMPERATURE = float(os.getenv("RAG_DEFAULT_TEMPERATURE", "1.0"))
DEFAULT_PROVIDER = os.getenv("RAG_DEFAULT_PROVIDER", "local_openai")
DEFAULT_MODEL = os.getenv("RAG_DEFAULT_MODEL", "Llama-3.2-3B-Instruct-q4f16_1-MLC")
DEFAULT_DEDUP_MODE = DedupMode(os.getenv("RAG_DEDUP_MODE", DedupMode.SKIP.value))


class ModelConfig(BaseModel):
    """Static facts about one chat model."""

    provider: str
    model: str
    max_tokens: int = Field(..., gt=0, description="Context window size in tokens")
    cushion: int | None = Field(
        default=None,
        description="Model-specific cushion; falls back to the session cushion when unset",
    )


class SessionSettings(BaseModel):
    """Per-session tunables, defaulting to the module-level configuration."""

    token_cushion: int = Field(default_factory=lambda: TOKEN_CUSHION_CHAT)
    min_tokens_for_exchange: int = Field(default_factory=lambda: MIN_TOKENS_FOR_EXCHANGE)
    min_context_chunks: int = Field(default_factory=lambda: MIN_CONTEXT_CHUNKS)
    max_output_tokens: int = Field(default_factory=lambda: MAX_OUTPUT_TOKENS)
    throw_on_token_limit: bool = Field(default_factory=lambda: THROW_ON_TOKEN_LIMIT)
    dedup_mode: DedupMode = Field(default_factory=lambda: DEFAULT_DEDUP_MODE)

    def cushion_for(self, model_cfg: ModelConfig) -> int:
        """Effective cushion for a model."""
        if model_cfg.cushion is not None:
            return model_cfg.cushion
        return self.token_cushion


_MODEL_TABLE: dict[str, dict[str, ModelConfig]] = {}


def register_model(model_cfg: ModelConfig) -> None:
    """Add or replace a model entry in the lookup table."""
    _MODEL_TABLE.setdefault(model_cfg.provider, {})[model_cfg.model] = model_cfg


def get_model_cfg(provider: str, model: str) -> ModelConfig:
    """Look up the configuration for a provider/model pair."""
    try:
        return _MODEL_TABLE[provider][model]
    except KeyError:
        raise ModelConfigError(
            f'Could not find config options for model "{model}" (provider "{provider}"). Incorrect configuration?',
            provider=provider,
            model=model,
        ) from None


def list_models(provider: str | None = None) -> list[ModelConfig]:
    """All registered models, optionally for a single provider."""
    if provider is not None:
        return list(_MODEL_TABLE.get(provider, {}).values())
    return [cfg for models in _MODEL_TABLE.values() for cfg in models.values()]


for _cfg in (
    # Hosted OpenAI-compatible endpoints
    ModelConfig(provider="openai", model="gpt-4o-mini", max_tokens=128000),
    ModelConfig(provider="openai", model="gpt-4.1-nano", max_tokens=1047576),
    ModelConfig(provider="openai", model="gpt-4.1-mini", max_tokens=1047576),
    # Local OpenAI-compatible runtimes with prefix caching
    ModelConfig(provider="local_openai", model="Llama-3.2-1B-Instruct-q4f16_1-MLC", max_tokens=4096, cushion=512),
    ModelConfig(provider="local_openai", model="Llama-3.2-3B-Instruct-q4f16_1-MLC", max_tokens=4096, cushion=512),
    ModelConfig(provider="local_openai", model="Qwen2.5-1.5B-Instruct-q4f16_1-MLC", max_tokens=4096, cushion=512),
    ModelConfig(provider="local_openai", model="TinyLlama-1.1B-Chat-v1.0-q4f16_1-MLC", max_tokens=2048, cushion=256),
    # On-device runtimes holding session state
    ModelConfig(provider="ondevice", model="nano-prompt", max_tokens=9216, cushion=1024),
    ModelConfig(provider="ondevice", model="nano-writer", max_tokens=6144, cushion=1024),
):
    register_model(_cfg)
