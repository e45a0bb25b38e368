# chuk_rag_session/capabilities.py
"""
Provider Capability Registry.

Static description, per backend, of its provider family, multi-turn support
and token-accounting fidelity. Consulted once when a session is created;
capabilities never change mid-session.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from chuk_rag_session.exceptions import UnknownProviderError
from chuk_rag_session.models.capabilities import ProviderCapabilities, ProviderDescriptor
from chuk_rag_session.models.enums import ProviderFamily


class ProviderProfile(BaseModel):
    """Registry entry for one provider."""

    provider: str
    family: ProviderFamily
    capabilities: ProviderCapabilities = Field(default_factory=ProviderCapabilities)
    # Model ids containing one of these markers only support a single turn
    single_turn_markers: tuple[str, ...] = ()
    model_overrides: dict[str, ProviderCapabilities] = Field(default_factory=dict)


class CapabilityRegistry:
    """Lookup of ``(provider, model) -> ProviderCapabilities``."""

    def __init__(self, profiles: list[ProviderProfile] | None = None):
        self._profiles: dict[str, ProviderProfile] = {}
        for profile in profiles or []:
            self.register(profile)

    def register(self, profile: ProviderProfile) -> None:
        self._profiles[profile.provider] = profile

    def providers(self) -> list[str]:
        return list(self._profiles)

    def _profile(self, provider: str) -> ProviderProfile:
        try:
            return self._profiles[provider]
        except KeyError:
            raise UnknownProviderError(provider) from None

    def family_for(self, provider: str) -> ProviderFamily:
        return self._profile(provider).family

    def capabilities_for(self, provider: str, model: str) -> ProviderCapabilities:
        profile = self._profile(provider)
        if model in profile.model_overrides:
            return profile.model_overrides[model]
        if any(marker in model for marker in profile.single_turn_markers):
            return profile.capabilities.model_copy(update={"supports_multi_turn": False})
        return profile.capabilities

    def describe(self, provider: str, model: str) -> ProviderDescriptor:
        """Family and capabilities together, as used for session dispatch."""
        return ProviderDescriptor(
            provider=provider,
            model=model,
            family=self.family_for(provider),
            capabilities=self.capabilities_for(provider, model),
        )


def default_registry() -> CapabilityRegistry:
    """Registry with the built-in provider families."""
    return CapabilityRegistry(
        [
            # Full history replayed on every call; usage is per call
            ProviderProfile(provider="openai", family=ProviderFamily.STATELESS_REPLAY),
            ProviderProfile(provider="local_openai", family=ProviderFamily.STATELESS_REPLAY),
            # History kept runtime-side on a handle; "-writer" models are single-shot
            ProviderProfile(
                provider="ondevice",
                family=ProviderFamily.STATEFUL_SESSION,
                single_turn_markers=("-writer",),
            ),
        ]
    )
