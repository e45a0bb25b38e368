# chuk_rag_session/models/capabilities.py
"""Static provider facts."""

from __future__ import annotations

from pydantic import ConfigDict

from chuk_rag_session.base_models import DictCompatModel
from chuk_rag_session.models.enums import ProviderFamily


class ProviderCapabilities(DictCompatModel):
    """What a provider/model supports."""

    model_config = ConfigDict(frozen=True)

    supports_multi_turn: bool = True
    supports_token_tracking: bool = True


class ProviderDescriptor(DictCompatModel):
    """Everything the session needs to pick a dispatch branch."""

    model_config = ConfigDict(frozen=True)

    provider: str
    model: str
    family: ProviderFamily
    capabilities: ProviderCapabilities

    @property
    def single_turn(self) -> bool:
        return not self.capabilities.supports_multi_turn
