"""Multimodal embedding generation via Voyage AI.

Every vector in the system (item text, images, queries, conversation memory) comes
from the same multimodal model, so a text query can land next to an image item.

If VOYAGE_API_KEY is not set, or the provider fails, encoding returns None for the
affected inputs instead of raising. Callers treat None as "retrieval degraded".
"""

from dataclasses import dataclass
from typing import Any, Literal

import httpx

from spark_engine.core.config import Settings, get_settings
from spark_engine.core.logging import get_logger

logger = get_logger(__name__)

EncodeMode = Literal["document", "query"]


@dataclass
class EncoderInput:
    """One thing to embed: text, an image URL, or both (same vector)."""

    text: str | None = None
    image_url: str | None = None


def _build_content(item: EncoderInput, settings: Settings) -> list[dict[str, Any]]:
    """Build the multimodal content list for one input, truncating text."""
    budget = (
        settings.EMBED_IMAGE_TEXT_CHAR_BUDGET if item.image_url else settings.EMBED_TEXT_CHAR_BUDGET
    )
    content: list[dict[str, Any]] = []
    if item.text and item.text.strip():
        content.append({"type": "text", "text": item.text[:budget]})
    if item.image_url:
        content.append({"type": "image_url", "image_url": item.image_url})
    return content


async def _encode_batch(
    client: httpx.AsyncClient,
    contents: list[list[dict[str, Any]]],
    mode: EncodeMode,
    settings: Settings,
) -> list[list[float] | None]:
    """Encode one batch; result is aligned with `contents`, None on any failure."""
    try:
        response = await client.post(
            settings.VOYAGE_MULTIMODAL_URL,
            headers={"Authorization": f"Bearer {settings.VOYAGE_API_KEY}"},
            json={
                "model": settings.EMBEDDING_MODEL,
                "inputs": [{"content": c} for c in contents],
                "input_type": mode,
            },
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"Encoder error {e.response.status_code}: {e.response.text[:300]}")
        return [None] * len(contents)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Encoder request failed: {e}")
        return [None] * len(contents)

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, list):
        logger.error("Encoder response missing data array")
        return [None] * len(contents)

    # Provider may return results out of order; restore caller order by index
    results: list[list[float] | None] = [None] * len(contents)
    for entry in data:
        if not isinstance(entry, dict):
            continue
        index = entry.get("index")
        embedding = entry.get("embedding")
        if not isinstance(index, int) or not 0 <= index < len(contents):
            continue
        if not isinstance(embedding, list) or len(embedding) != settings.EMBEDDING_DIM:
            logger.warning(
                f"Dropping embedding {index}: expected dim {settings.EMBEDDING_DIM}, "
                f"got {len(embedding) if isinstance(embedding, list) else 'none'}"
            )
            continue
        results[index] = embedding

    return results


async def encode(
    inputs: list[EncoderInput],
    mode: EncodeMode = "document",
    client: httpx.AsyncClient | None = None,
) -> list[list[float] | None]:
    """
    Encode inputs into the shared multimodal space.

    Args:
        inputs: Texts and/or image URLs to embed
        mode: "document" for stored content, "query" for search queries
        client: Optional HTTP client (a short-lived one is created otherwise)

    Returns:
        One vector or None per input, in input order. Never raises.
    """
    if not inputs:
        return []

    settings = get_settings()
    if not settings.VOYAGE_API_KEY:
        logger.warning("VOYAGE_API_KEY not set, skipping embedding generation")
        return [None] * len(inputs)

    results: list[list[float] | None] = [None] * len(inputs)

    # Empty inputs never reach the provider
    positions = []
    contents = []
    for i, item in enumerate(inputs):
        content = _build_content(item, settings)
        if content:
            positions.append(i)
            contents.append(content)

    if not contents:
        return results

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=settings.EMBED_TIMEOUT)

    try:
        batch_size = max(1, settings.EMBED_BATCH_SIZE)
        for start in range(0, len(contents), batch_size):
            batch = contents[start : start + batch_size]
            vectors = await _encode_batch(client, batch, mode, settings)
            for offset, vector in enumerate(vectors):
                results[positions[start + offset]] = vector
    finally:
        if owns_client:
            await client.aclose()

    encoded = sum(1 for r in results if r is not None)
    logger.info(
        f"Encoded {encoded}/{len(inputs)} inputs ({mode}) using {settings.EMBEDDING_MODEL}",
    )
    return results


async def encode_document(text: str, image_url: str | None = None) -> list[float] | None:
    """Encode a single stored document (optionally with an image)."""
    results = await encode([EncoderInput(text=text, image_url=image_url)], mode="document")
    return results[0]


async def encode_query(text: str) -> list[float] | None:
    """Encode a search query for asymmetric retrieval."""
    results = await encode([EncoderInput(text=text)], mode="query")
    return results[0]
