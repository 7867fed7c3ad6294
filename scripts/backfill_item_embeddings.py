#!/usr/bin/env python3
"""
Backfill script for item embeddings.

Embeds items that have no embedding yet (for example, items created while the
encoder was unavailable). With --force, re-embeds every item whether or not it
already has one. Items are walked oldest first, so ones that keep failing are
reported and skipped rather than retried forever.

Usage:
    python scripts/backfill_item_embeddings.py [--workspace-id WORKSPACE_ID] [--limit 200] [--force]

Options:
    --workspace-id: Optional workspace UUID to backfill only that workspace
    --limit: Items fetched per pass (default: BACKFILL_LIMIT)
    --force: Re-embed items that already have an embedding
"""

import argparse
import asyncio
import sys
from pathlib import Path
from uuid import UUID

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from spark_engine.core.config import get_settings
from spark_engine.core.indexing import index_items_batch
from spark_engine.core.logging import get_logger
from spark_engine.db.items import list_items_for_backfill

logger = get_logger(__name__)


async def backfill(workspace_id: UUID | None, limit: int, force: bool) -> tuple[int, int]:
    """Walk every matching item once, oldest first, one page per pass."""
    total_success = 0
    total_failed = 0
    pass_number = 0
    cursor = None

    while True:
        pass_number += 1
        items = list_items_for_backfill(workspace_id, force, limit, after=cursor)
        if not items:
            break

        logger.info(f"Pass {pass_number}: {len(items)} items")
        success, failed = await index_items_batch(items)
        total_success += success
        total_failed += failed

        # Failed rows stay unembedded; move past them instead of re-selecting
        last = items[-1]
        cursor = (last["created_at"], last["id"])

    return total_success, total_failed


def main():
    """Main backfill function."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Backfill item embeddings")
    parser.add_argument(
        "--workspace-id",
        type=str,
        help="Optional workspace UUID to backfill only that workspace",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.BACKFILL_LIMIT,
        help=f"Items fetched per pass (default: {settings.BACKFILL_LIMIT})",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-embed items that already have an embedding",
    )

    args = parser.parse_args()
    workspace_id = UUID(args.workspace_id) if args.workspace_id else None

    if not settings.VOYAGE_API_KEY:
        logger.error("VOYAGE_API_KEY not set, nothing to do")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("ITEM EMBEDDING BACKFILL")
    logger.info("=" * 60)
    logger.info(f"Workspace: {workspace_id or 'ALL'}  limit={args.limit}  force={args.force}")

    try:
        success, failed = asyncio.run(backfill(workspace_id, args.limit, args.force))
    except Exception as e:
        logger.error(f"Backfill failed: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info(f"BACKFILL COMPLETE - {success} embedded, {failed} failed")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()
