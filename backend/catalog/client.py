# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261018v1
# ---------------------------------------------------------------------------
"""
Google Books volumes API client.

Only the fields the bookshelf stores are extracted.  Every failure mode
(timeout, transport error, non-200 status, malformed body) surfaces as
:class:`UpstreamError`; callers degrade to an empty result list.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from core.config import settings
from core.errors import UpstreamError
from core.logger import logger


class CatalogBook(BaseModel):
    """One search hit, flattened for the search / recommendation pages."""

    external_id: str
    title: str
    author: str
    year: Optional[str] = None
    isbn: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None


class CatalogClient:
    """Thin async wrapper around ``GET /books/v1/volumes``."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        max_query_length: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.max_query_length = max_query_length
        # Injected by tests (httpx.MockTransport); None means real network.
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "CatalogClient":
        return cls(
            base_url=settings.catalog_api_url,
            api_key=settings.catalog_api_key,
            timeout=settings.catalog_timeout_seconds,
            max_query_length=settings.search_query_max_length,
        )

    def limit_query(self, query: str) -> str:
        return (query or "").strip()[: self.max_query_length]

    async def search(self, query: str, max_results: int = 10) -> List[CatalogBook]:
        """
        Search the catalog.  *query* is capped at ``max_query_length``
        characters before it leaves the process.
        """
        query = self.limit_query(query)
        if not query:
            return []

        params: Dict[str, Any] = {"q": query, "maxResults": min(max_results, 40)}
        if self.api_key:
            params["key"] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.base_url, params=params)
        except httpx.TimeoutException as exc:
            logger.warning("Catalog search timed out after %.1fs | query=%r", self.timeout, query)
            raise UpstreamError("The book catalog did not respond in time.") from exc
        except httpx.HTTPError as exc:
            logger.warning("Catalog search failed | query=%r error=%s", query, exc)
            raise UpstreamError("The book catalog is unavailable.") from exc

        if resp.status_code != 200:
            logger.warning("Catalog returned HTTP %d | query=%r", resp.status_code, query)
            raise UpstreamError(f"The book catalog returned HTTP {resp.status_code}.")

        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError("The book catalog returned an unreadable response.") from exc

        results = []
        for item in data.get("items") or []:
            book = self._parse_volume(item)
            if book:
                results.append(book)
        return results

    @staticmethod
    def _parse_volume(item: Dict[str, Any]) -> Optional[CatalogBook]:
        """Flatten one volume; items without an id are dropped."""
        if not isinstance(item, dict) or not item.get("id"):
            return None
        info = item.get("volumeInfo") or {}

        authors = info.get("authors") or []
        published = info.get("publishedDate") or ""
        identifiers = info.get("industryIdentifiers") or []
        images = info.get("imageLinks") or {}

        return CatalogBook(
            external_id=item["id"],
            title=info.get("title") or "Unknown Title",
            author=", ".join(authors) if authors else "Unknown Author",
            year=published[:4] or None,
            isbn=identifiers[0].get("identifier") if identifiers else None,
            description=info.get("description") or "No description available",
            cover_url=images.get("thumbnail") or images.get("smallThumbnail"),
        )
