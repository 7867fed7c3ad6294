"""API router for v1 endpoints."""

from fastapi import APIRouter

from spark_engine.api import chat, chat_sessions, embeddings, items, search, vectors, workspaces

router = APIRouter()

# Workspace and item CRUD (item indexing runs in the background)
router.include_router(workspaces.router)
router.include_router(items.router)

# Retrieval: hybrid search and the projected vector space
router.include_router(search.router)
router.include_router(vectors.router)

# Chat: streaming assistant and session management
router.include_router(chat.router)
router.include_router(chat_sessions.router)

# Maintenance
router.include_router(embeddings.router)
