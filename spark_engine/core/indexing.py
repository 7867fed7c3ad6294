"""Item indexing: embeddable text, image extraction and embedding writes.

An item is encoded once, as a single document, from its type tag, title, body,
summary, tags and source URL. Image items also send their picture in the same
encoder call so both modalities share one vector.

Indexing is fire-and-forget: failures are logged and leave the item searchable
lexically until the next backfill.
"""

from typing import Any
from urllib.parse import urlparse

from spark_engine.core.config import get_settings
from spark_engine.core.embeddings import EncoderInput, encode
from spark_engine.core.logging import get_logger
from spark_engine.db.items import set_index_status, update_item_embedding

logger = get_logger(__name__)

IMAGE_ITEM_TYPES = {"image"}


def _item_type(item: dict[str, Any]) -> str | None:
    value = item.get("type")
    # ItemType is a str enum; normalise to its value
    return getattr(value, "value", value)


def _item_tags(item: dict[str, Any]) -> list[str]:
    tags = item.get("tags")
    if not tags:
        tags = (item.get("metadata") or {}).get("tags")
    if not isinstance(tags, list):
        return []
    return [str(t) for t in tags if t]


def build_item_text(item: dict[str, Any]) -> str:
    """Embeddable text for an item, one field per line in a fixed order."""
    parts: list[str] = []
    item_type = _item_type(item)
    if item_type:
        parts.append(f"[{item_type}]")
    parts.append(item.get("title") or "")
    if item.get("body"):
        parts.append(item["body"])
    if item.get("summary"):
        parts.append(item["summary"])

    tags = _item_tags(item)
    if tags:
        parts.append(f"Tags: {', '.join(tags)}")

    url = (item.get("metadata") or {}).get("url")
    if url:
        parts.append(f"URL: {url}")

    return "\n".join(parts)


def is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


def get_item_image_url(item: dict[str, Any]) -> str | None:
    """HTTP(S) image reference for image items; data: URIs and other schemes are rejected."""
    if _item_type(item) not in IMAGE_ITEM_TYPES:
        return None
    metadata = item.get("metadata") or {}
    url = metadata.get("image_url") or item.get("body")
    return url if is_http_url(url) else None


def is_publicly_fetchable(url: str | None) -> bool:
    """False for non-HTTP URLs and hosts that require a signed-in session."""
    if not is_http_url(url):
        return False
    host = (urlparse(url).hostname or "").lower()
    return host not in {h.lower() for h in get_settings().PRIVATE_IMAGE_HOSTS}


def build_encoder_input(item: dict[str, Any]) -> EncoderInput:
    return EncoderInput(text=build_item_text(item), image_url=get_item_image_url(item))


async def index_item(item: dict[str, Any]) -> list[float] | None:
    """
    Encode an item and persist its embedding.

    Never raises. Returns the stored vector, or None when the encoder is
    unavailable or the write failed.
    """
    item_id = item.get("id")
    if not item_id:
        return None

    try:
        vectors = await encode([build_encoder_input(item)], mode="document")
        embedding = vectors[0] if vectors else None
        if embedding is None:
            logger.warning(f"No embedding produced for item {item_id}, left for backfill")
            return None

        update_item_embedding(item_id, embedding)
        logger.debug(f"Embedded item {item_id}")
        return embedding

    except Exception as e:
        logger.warning(f"Item indexing failed for {item_id}: {e}")
        return None


async def index_items_batch(items: list[dict[str, Any]]) -> tuple[int, int]:
    """
    Encode items in encoder-sized batches and persist each embedding (for backfill).

    Returns:
        (success, failed) counts
    """
    valid = [item for item in items if item.get("id")]
    if not valid:
        return 0, 0

    vectors = await encode([build_encoder_input(item) for item in valid], mode="document")

    success = 0
    failed = 0
    for item, embedding in zip(valid, vectors, strict=True):
        if embedding is None:
            failed += 1
            continue
        try:
            update_item_embedding(item["id"], embedding)
            success += 1
        except Exception as e:
            logger.warning(f"Backfill embedding write failed for {item['id']}: {e}")
            failed += 1

    logger.info(f"Backfilled {success}/{len(valid)} item embeddings")
    return success, failed


def mark_index_status(item_id: str, status: str) -> None:
    """Persist an indexing state transition; logged, never raised."""
    try:
        set_index_status(item_id, status)
    except Exception as e:
        logger.warning(f"Failed to set index_status={status} for {item_id}: {e}")
