"""Chat session and turn schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ChatRequest(BaseModel):
    """Request to chat with the workspace assistant."""

    workspace_id: UUID
    message: str = Field(..., min_length=1)
    session_id: UUID | None = None
    skip_persist: bool = False


class ChatSession(BaseModel):
    """A conversation within a workspace."""

    id: UUID
    workspace_id: UUID
    title: str = "New Chat"
    user_utterances: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChatSessionSummary(ChatSession):
    """Session list entry with activity preview."""

    message_count: int = 0
    last_message_preview: str | None = None


class Turn(BaseModel):
    """One persisted message in a session."""

    id: UUID
    session_id: UUID
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime | None = None


class SessionCreate(BaseModel):
    """Request body for creating a session."""

    workspace_id: UUID
    title: str | None = None


class SessionRename(BaseModel):
    """Request body for renaming a session."""

    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must be a non-empty string")
        return v
