"""Workspace schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class Workspace(BaseModel):
    """A container for items and chat sessions."""

    id: UUID
    name: str
    description: str | None = None
    status: str = "active"
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("metadata", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class WorkspaceCreate(BaseModel):
    """Request body for creating a workspace."""

    name: str = Field(..., min_length=1)
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must be a non-empty string")
        return v.strip()


class WorkspaceUpdate(BaseModel):
    """Partial update for a workspace. Only provided fields are written."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    status: str | None = Field(default=None, min_length=1)
    metadata: dict[str, Any] | None = None

    @field_validator("name", "status", mode="before")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("cannot be null")
        return v

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)
