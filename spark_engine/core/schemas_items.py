"""Item schemas for workspace content."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class ItemType(str, Enum):
    """Kinds of content a workspace can hold."""

    LINK = "link"
    IMAGE = "image"
    TEXT = "text"
    FILE = "file"
    NOTE = "note"
    IMPORTED_DOC = "imported_doc"
    IMPORTED_MESSAGE = "imported_message"


class IndexStatus(str, Enum):
    """Per-item indexing state: pending -> enriched|failed -> embedded."""

    PENDING = "pending"
    ENRICHED = "enriched"
    FAILED = "failed"
    EMBEDDED = "embedded"


class EnrichmentStatus(str, Enum):
    """Outcome of the external-content enrichment step."""

    SUCCESS = "success"
    FAILED = "failed"


# Item types whose canonical content must be fetched before encoding
ENRICHABLE_TYPES = {ItemType.LINK}

# Fields whose change invalidates the stored embedding
EMBEDDED_FIELDS = ("title", "body", "summary", "tags", "metadata")


class Item(BaseModel):
    """A stored workspace item."""

    id: UUID
    workspace_id: UUID
    type: ItemType
    title: str
    body: str | None = None
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    index_status: IndexStatus = IndexStatus.PENDING
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("tags", "metadata", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return [] if info.field_name == "tags" else {}
        return v


class ItemCreate(BaseModel):
    """Request body for creating an item."""

    workspace_id: UUID
    type: ItemType
    title: str = Field(..., min_length=1)
    body: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ItemUpdate(BaseModel):
    """Partial update for an item. Only provided fields are written."""

    title: str | None = Field(default=None, min_length=1)
    body: str | None = None
    summary: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("title", mode="before")
    @classmethod
    def title_not_null(cls, v: Any) -> Any:
        # Defaults skip validation, so this only fires on an explicit null
        if v is None:
            raise ValueError("title cannot be null")
        return v

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def touches_embedding(self) -> bool:
        """True if any embedded field is part of this update."""
        return any(field in self.changes() for field in EMBEDDED_FIELDS)


class BackfillRequest(BaseModel):
    """Request body for the embedding backfill endpoint."""

    workspace_id: UUID | None = None
    force: bool = False


class SearchHit(BaseModel):
    """One search result with its ranking signals."""

    id: UUID
    type: ItemType
    title: str
    summary: str | None = None
    similarity: float | None = None
    fused_score: float | None = None
    lexical_rank: int | None = None
    vector_rank: int | None = None


class SearchResponse(BaseModel):
    query: str
    mode: str
    degraded: bool = False  # True when the query could not be encoded
    results: list[SearchHit] = Field(default_factory=list)


class BackfillResponse(BaseModel):
    total: int
    success: int
    failed: int
    model: str
    dimensions: int
