# chuk_rag_session/models/reference.py
"""Retrieved passage references handed over by the search collaborator."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReferenceChunk(BaseModel):
    """A ranked fragment of a source passage. Read-only to this package."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(..., description="Identifier (typically the URL) of the source passage")
    start_offset: int = Field(default=0, ge=0)
    end_offset: int = Field(default=0, ge=0)
    similarity_score: float = Field(default=0.0)


class SearchFilters(BaseModel):
    """Filters forwarded untouched to the search collaborator."""

    post_type: list[str] = Field(default_factory=list)
    min_date: str = ""
    category_primary: list[str] = Field(default_factory=list)


class SearchResults(BaseModel):
    """What the search collaborator returns for a query."""

    chunks: list[ReferenceChunk] = Field(default_factory=list)
    documents: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
