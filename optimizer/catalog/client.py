"""
REST catalog client with the retry policy every catalog call goes through
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..config import (
    CATALOG_PAGE_SIZE, CATALOG_PAGE_DELAY_SEC, CATALOG_MAX_ATTEMPTS,
    CATALOG_BACKOFF_BASE_SEC, CATALOG_RETRY_AFTER_DEFAULT_SEC,
    CATALOG_MAX_RATE_LIMIT_WAITS, CATALOG_TIMEOUT_SEC
)
from ..services.prometheus_metrics import prometheus_metrics
from .base import CatalogSource
from .errors import (
    CatalogError, CatalogAuthError, CatalogRateLimitError,
    CatalogNotFoundError, CatalogUserError
)
from .items import CatalogItem, CatalogPage

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; HTTP-date values are ignored."""
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class CatalogClient(CatalogSource):
    """
    Catalog REST API client for one tenant.

    Endpoints:
    - GET   {base}/items?limit=&cursor=   -> {"items": [...], "next_cursor", "has_more"}
    - GET   {base}/items/{id}             -> {"item": {...}}
    - PATCH {base}/items/{id}             -> {"item": {...}, "user_errors": [...]}

    Retry policy:
    - 429: wait Retry-After (or the default) and retry without using an attempt
    - 401/403: raise CatalogAuthError immediately
    - anything else: up to `max_attempts` attempts with exponential backoff
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        http: httpx.AsyncClient,
        *,
        page_size: int = CATALOG_PAGE_SIZE,
        page_delay: float = CATALOG_PAGE_DELAY_SEC,
        max_attempts: int = CATALOG_MAX_ATTEMPTS,
        backoff_base: float = CATALOG_BACKOFF_BASE_SEC,
        retry_after_default: float = CATALOG_RETRY_AFTER_DEFAULT_SEC,
        max_rate_limit_waits: int = CATALOG_MAX_RATE_LIMIT_WAITS,
        timeout: float = CATALOG_TIMEOUT_SEC,
        sleep=asyncio.sleep,
    ):
        super().__init__(sleep=sleep)
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.http = http
        self.page_size = page_size
        self.page_delay = page_delay
        self.max_attempts = max(1, max_attempts)
        self.backoff_base = backoff_base
        self.retry_after_default = retry_after_default
        self.max_rate_limit_waits = max_rate_limit_waits
        self.timeout = timeout

    async def fetch_page(self, cursor: Optional[str] = None) -> CatalogPage:
        params: Dict[str, Any] = {"limit": self.page_size}
        if cursor:
            params["cursor"] = cursor
        data = await self._call("GET", "/items", params=params)
        return CatalogPage(
            items=[CatalogItem.from_payload(row) for row in data.get("items") or []],
            next_cursor=data.get("next_cursor"),
            has_more=bool(data.get("has_more")),
        )

    async def get_item(self, item_id: str) -> CatalogItem:
        data = await self._call("GET", f"/items/{item_id}")
        item = data.get("item")
        if not item:
            raise CatalogNotFoundError(f"Item {item_id} not found")
        return CatalogItem.from_payload(item)

    async def mutate(self, item_id: str, field_set: Dict[str, Any]) -> CatalogItem:
        data = await self._call("PATCH", f"/items/{item_id}", json=field_set)
        user_errors = data.get("user_errors") or []
        if user_errors:
            raise CatalogUserError([_format_user_error(e) for e in user_errors])
        item = data.get("item")
        if not item:
            raise CatalogUserError([f"No item returned for {item_id}"])
        return CatalogItem.from_payload(item)

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        attempt = 0
        rate_limit_waits = 0
        while True:
            try:
                return await self._request(method, path, **kwargs)
            except CatalogAuthError:
                raise
            except CatalogRateLimitError as e:
                rate_limit_waits += 1
                if self.max_rate_limit_waits and rate_limit_waits > self.max_rate_limit_waits:
                    raise
                wait = e.retry_after if e.retry_after is not None else self.retry_after_default
                prometheus_metrics.increment_catalog_retries("rate_limited")
                logger.warning("Catalog rate limited, waiting %.2fs", wait, extra={
                    "component": "catalog",
                    "path": path,
                    "rate_limit_waits": rate_limit_waits
                })
                await self._sleep(wait)
            except (CatalogError, httpx.HTTPError) as e:
                attempt += 1
                if attempt >= self.max_attempts:
                    logger.error("Catalog call failed after %d attempts: %s", attempt, e, extra={
                        "component": "catalog",
                        "path": path
                    })
                    if isinstance(e, CatalogError):
                        raise
                    raise CatalogError(f"Catalog request failed: {e}") from e
                delay = self.backoff_base * (2 ** (attempt - 1))
                prometheus_metrics.increment_catalog_retries("error")
                logger.warning("Catalog call failed (attempt %d/%d), retrying in %.2fs: %s",
                               attempt, self.max_attempts, delay, e, extra={
                                   "component": "catalog",
                                   "path": path
                               })
                await self._sleep(delay)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }
        resp = await self.http.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )
        status = resp.status_code
        if status == 429:
            raise CatalogRateLimitError(
                "Catalog rate limit exceeded",
                retry_after=parse_retry_after(resp.headers.get("Retry-After")),
            )
        if status in (401, 403):
            raise CatalogAuthError(f"Catalog rejected credentials ({status})", status=status)
        if status == 404:
            raise CatalogNotFoundError(f"Catalog resource not found: {path}")
        if status >= 400:
            raise CatalogError(f"Catalog API error: {status} {resp.reason_phrase}", status=status)
        try:
            data = resp.json()
        except ValueError as e:
            raise CatalogError(f"Invalid catalog response: {e}", status=status) from e
        if not isinstance(data, dict):
            raise CatalogError(f"Invalid catalog response: expected an object, got {type(data).__name__}",
                               status=status)
        if data.get("errors"):
            raise CatalogError(f"Catalog API errors: {data['errors']}", status=status)
        return data


def _format_user_error(error: Any) -> str:
    if isinstance(error, dict):
        field_path = error.get("field")
        if isinstance(field_path, list):
            field_path = ".".join(str(p) for p in field_path)
        message = error.get("message") or "invalid value"
        return f"{field_path}: {message}" if field_path else message
    return str(error)
