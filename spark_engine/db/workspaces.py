"""Database operations for workspaces."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from spark_engine.db.supabase_client import get_supabase


def list_workspaces() -> list[dict[str, Any]]:
    """All workspaces, most recently updated first."""
    supabase = get_supabase()
    response = supabase.table("workspaces").select("*").order("updated_at", desc=True).execute()
    return response.data or []


def create_workspace(
    name: str,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Insert a workspace and return the stored row."""
    supabase = get_supabase()
    response = (
        supabase.table("workspaces")
        .insert({"name": name, "description": description, "metadata": metadata or {}})
        .execute()
    )
    if not response.data:
        raise RuntimeError("Workspace insert returned no row")
    return response.data[0]


def get_workspace(workspace_id: UUID | str) -> dict[str, Any] | None:
    """Fetch a workspace row (name, description, status, metadata)."""
    supabase = get_supabase()
    response = (
        supabase.table("workspaces")
        .select("*")
        .eq("id", str(workspace_id))
        .maybe_single()
        .execute()
    )
    if response is None:
        return None
    return response.data


def update_workspace(workspace_id: UUID | str, changes: dict[str, Any]) -> dict[str, Any] | None:
    """Apply a partial update and return the updated row."""
    supabase = get_supabase()
    response = (
        supabase.table("workspaces")
        .update({**changes, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", str(workspace_id))
        .execute()
    )
    return response.data[0] if response.data else None


def delete_workspace(workspace_id: UUID | str) -> None:
    """Delete a workspace; its items, sessions and turns cascade with it."""
    supabase = get_supabase()
    supabase.table("workspaces").delete().eq("id", str(workspace_id)).execute()
