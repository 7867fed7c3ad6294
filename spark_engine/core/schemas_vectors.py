"""Schemas for the projected vector space."""

from pydantic import BaseModel, ConfigDict, Field


class ProjectedPoint(BaseModel):
    """An item placed in 3D space."""

    id: str
    type: str | None = None
    title: str | None = None
    summary: str | None = None
    position: tuple[float, float, float]


class SimilarityEdge(BaseModel):
    """Two items whose original embeddings have cosine similarity above the threshold."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from")
    to: str
    similarity: float


class VectorSpaceResponse(BaseModel):
    items: list[ProjectedPoint] = Field(default_factory=list)
    edges: list[SimilarityEdge] = Field(default_factory=list)
