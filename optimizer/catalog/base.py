"""
Catalog source interface shared by the HTTP client and test doubles
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

from .items import CatalogItem, CatalogPage

logger = logging.getLogger(__name__)


class CatalogSource(ABC):
    """
    Paginated read and field-set write access to one tenant's catalog.

    Implementations:
    - CatalogClient: REST catalog over httpx
    - in-memory doubles in the test suite
    """

    page_delay: float = 0.0

    def __init__(self, sleep=asyncio.sleep):
        self._sleep = sleep

    @abstractmethod
    async def fetch_page(self, cursor: Optional[str] = None) -> CatalogPage:
        """Fetch one page of items starting after `cursor`."""

    @abstractmethod
    async def get_item(self, item_id: str) -> CatalogItem:
        """Re-read the current remote state of a single item."""

    @abstractmethod
    async def mutate(self, item_id: str, field_set: Dict[str, Any]) -> CatalogItem:
        """Write a field set and return the applied item state."""

    async def iter_items(self) -> AsyncIterator[CatalogItem]:
        """Yield every item, following cursors until the catalog reports no more pages."""
        cursor = None
        pages = 0
        while True:
            page = await self.fetch_page(cursor)
            pages += 1
            for item in page.items:
                yield item
            if not page.has_more or not page.next_cursor:
                break
            cursor = page.next_cursor
            if self.page_delay:
                await self._sleep(self.page_delay)
        logger.debug("Catalog scan finished", extra={"component": "catalog", "pages": pages})

    async def list_items(self) -> List[CatalogItem]:
        return [item async for item in self.iter_items()]
