# tests/test_capabilities.py
"""
Tests for the provider capability registry and adapter dispatch.
"""

import pytest
from fakes import FakeStatefulBackend, FakeStatelessBackend
from pydantic import ValidationError

from chuk_rag_session.capabilities import CapabilityRegistry, ProviderProfile, default_registry
from chuk_rag_session.exceptions import UnknownProviderError
from chuk_rag_session.models import ProviderCapabilities, ProviderFamily
from chuk_rag_session.providers import (
    SingleTurnAdapter,
    StatefulSessionAdapter,
    StatelessReplayAdapter,
    build_adapter,
)


class TestDefaultRegistry:
    def test_providers(self):
        assert set(default_registry().providers()) == {"openai", "local_openai", "ondevice"}

    @pytest.mark.parametrize(
        "provider,family",
        [
            ("openai", ProviderFamily.STATELESS_REPLAY),
            ("local_openai", ProviderFamily.STATELESS_REPLAY),
            ("ondevice", ProviderFamily.STATEFUL_SESSION),
        ],
    )
    def test_family(self, provider, family):
        assert default_registry().family_for(provider) == family

    def test_writer_models_are_single_turn(self):
        registry = default_registry()
        assert registry.capabilities_for("ondevice", "nano-writer").supports_multi_turn is False
        assert registry.capabilities_for("ondevice", "nano-prompt").supports_multi_turn is True

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError, match="Unknown LLM provider: nope"):
            default_registry().describe("nope", "model")

    def test_descriptor_is_frozen(self):
        descriptor = default_registry().describe("openai", "gpt-4o-mini")
        assert descriptor.single_turn is False
        with pytest.raises(ValidationError):
            descriptor.family = ProviderFamily.STATEFUL_SESSION

    def test_capabilities_dict_access(self):
        caps = default_registry().capabilities_for("openai", "gpt-4o-mini")
        assert caps["supports_token_tracking"] is True
        assert "supports_multi_turn" in caps


class TestCustomRegistry:
    def test_model_override(self):
        registry = CapabilityRegistry(
            [
                ProviderProfile(
                    provider="lab",
                    family=ProviderFamily.STATELESS_REPLAY,
                    model_overrides={"blind": ProviderCapabilities(supports_token_tracking=False)},
                )
            ]
        )
        assert registry.capabilities_for("lab", "blind").supports_token_tracking is False
        assert registry.capabilities_for("lab", "other").supports_token_tracking is True

    def test_register_replaces(self):
        registry = CapabilityRegistry()
        registry.register(ProviderProfile(provider="x", family=ProviderFamily.STATELESS_REPLAY))
        registry.register(ProviderProfile(provider="x", family=ProviderFamily.STATEFUL_SESSION))
        assert registry.family_for("x") == ProviderFamily.STATEFUL_SESSION


class TestBuildAdapter:
    def test_stateless(self):
        descriptor = default_registry().describe("local_openai", "m")
        assert isinstance(build_adapter(descriptor, FakeStatelessBackend()), StatelessReplayAdapter)

    def test_stateful(self):
        descriptor = default_registry().describe("ondevice", "nano-prompt")
        adapter = build_adapter(descriptor, FakeStatefulBackend())
        assert type(adapter) is StatefulSessionAdapter

    def test_single_turn(self):
        descriptor = default_registry().describe("ondevice", "nano-writer")
        assert isinstance(build_adapter(descriptor, FakeStatefulBackend()), SingleTurnAdapter)
