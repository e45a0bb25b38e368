# chuk_rag_session/models/turn.py
"""Transcript entries."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from chuk_rag_session.models.enums import TurnRole


class Turn(BaseModel):
    """One message in the running transcript."""

    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: str

    def as_message(self) -> dict[str, str]:
        """Backend message shape: ``{"role": ..., "content": ...}``."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def user(cls, content: str) -> Turn:
        return cls(role=TurnRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> Turn:
        return cls(role=TurnRole.ASSISTANT, content=content)
