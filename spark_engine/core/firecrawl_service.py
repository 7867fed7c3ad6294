"""Firecrawl client used to enrich link items with page content."""

from dataclasses import dataclass, field
from typing import Any

import httpx

from spark_engine.core.config import get_settings
from spark_engine.core.logging import get_logger

logger = get_logger(__name__)

FIRECRAWL_BASE_URL = "https://api.firecrawl.dev/v1"


@dataclass
class ScrapedPage:
    """Main content and Open Graph metadata for one URL."""

    url: str
    markdown: str = ""
    title: str | None = None
    description: str | None = None
    og_image: str | None = None
    favicon: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _first(value: Any) -> str | None:
    # Firecrawl returns some meta tags as lists when the page repeats them
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _to_page(url: str, data: dict[str, Any]) -> ScrapedPage:
    metadata = data.get("metadata") or {}
    return ScrapedPage(
        url=url,
        markdown=data.get("markdown") or "",
        title=_first(metadata.get("ogTitle")) or _first(metadata.get("title")),
        description=_first(metadata.get("ogDescription")) or _first(metadata.get("description")),
        og_image=_first(metadata.get("ogImage")),
        favicon=_first(metadata.get("favicon")),
        metadata=metadata,
    )


async def scrape_page(
    url: str,
    timeout: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> ScrapedPage:
    """
    Scrape a page's main content using the Firecrawl API.

    Args:
        url: Page URL
        timeout: Optional timeout override in seconds
        client: Optional HTTP client (tests inject a mock transport)

    Returns:
        ScrapedPage with markdown body and page metadata

    Raises:
        ValueError: If FIRECRAWL_API_KEY is not configured
        httpx.HTTPError: If the request fails
    """
    settings = get_settings()

    if not settings.FIRECRAWL_API_KEY:
        raise ValueError("FIRECRAWL_API_KEY not configured")

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout or settings.FIRECRAWL_TIMEOUT)

    try:
        logger.info(f"Scraping page: {url}")
        response = await client.post(
            f"{FIRECRAWL_BASE_URL}/scrape",
            headers={"Authorization": f"Bearer {settings.FIRECRAWL_API_KEY}"},
            json={
                "url": url,
                "formats": ["markdown"],
                "onlyMainContent": True,
            },
        )
        response.raise_for_status()
        payload = response.json()
    finally:
        if owns_client:
            await client.aclose()

    page = _to_page(url, payload.get("data") or {})
    logger.info(f"Scraped {url}: {len(page.markdown)} chars, title: {page.title or 'N/A'}")
    return page


async def scrape_page_safe(
    url: str,
    timeout: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> ScrapedPage | None:
    """
    Scrape a page, returning None on any failure.

    Enrichment is optional: a failed scrape must never block indexing.
    """
    try:
        return await scrape_page(url, timeout, client)
    except ValueError as e:
        logger.warning(f"Firecrawl not configured: {e}")
        return None
    except httpx.HTTPStatusError as e:
        logger.warning(f"Firecrawl HTTP error for {url}: {e.response.status_code}")
        return None
    except httpx.TimeoutException:
        logger.warning(f"Firecrawl timeout for {url}")
        return None
    except Exception as e:
        logger.warning(f"Firecrawl error for {url}: {e}")
        return None
