"""
Mapbox API Client

Async REST client for the account-level Mapbox APIs used by the backup:
styles, sprites, tilesets, datasets and tokens.

API Documentation: https://docs.mapbox.com/api/

Usage:
    from mapbox_backup.api import MapboxClient

    async with MapboxClient(access_token="sk....") as client:
        fetch_page = client.list_styles()
        first = await fetch_page(None)
        style = await client.get_style(first.items[0]["id"], draft=True)

Pagination:
    List endpoints return a `Link: <...>; rel="next"` header while more
    pages remain. List methods hand back a `fetch_page(ref)` coroutine
    function: None fetches the first page, a page's `next_page` the next.

Rate Limits:
    - HTTP 429 is raised as ThrottleError; callers decide when to retry
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from mapbox_backup.config.constants import (
    DEFAULT_PAGE_LIMIT,
    DEFAULT_REQUEST_TIMEOUT,
    MAPBOX_API_URL,
)
from mapbox_backup.core.errors import TransportError, classify_status
from mapbox_backup.core.types import FetchPage, Page
from mapbox_backup.observability.logger import get_logger

from .token import username_from_token

logger = get_logger(__name__)


class MapboxClient:
    """Mapbox account API client."""

    # API paths (relative to the base URL)
    STYLES_PATH = "/styles/v1/{username}"
    STYLE_PATH = "/styles/v1/{username}/{style_id}"
    TILESETS_PATH = "/tilesets/v1/{username}"
    DATASETS_PATH = "/datasets/v1/{username}"
    FEATURES_PATH = "/datasets/v1/{username}/{dataset_id}/features"
    TOKENS_PATH = "/tokens/v2/{username}"

    SPRITE_FORMATS = ("json", "png")

    def __init__(
        self,
        access_token: str,
        username: str | None = None,
        base_url: str = MAPBOX_API_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        page_limit: int = DEFAULT_PAGE_LIMIT,
    ):
        """
        Initialize Mapbox API client.

        Args:
            access_token: Mapbox access token with the list/read scopes
            username: Account name (decoded from the token if omitted)
            base_url: API base URL
            timeout: Total request timeout in seconds
            page_limit: Items requested per list page
        """
        self.access_token = access_token
        self.username = username or username_from_token(access_token)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_limit = page_limit

        if not self.username:
            logger.warning("Unable to determine account username from access token")

        # Session
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "MapboxClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _url(self, path: str, **fields: str) -> str:
        if not self.username:
            raise TransportError("No account username; pass one explicitly")
        return self.base_url + path.format(username=self.username, **fields)

    async def _request(
        self,
        url: Any,
        params: dict[str, Any] | None = None,
        binary: bool = False,
    ) -> tuple[Any, Any]:
        """GET a URL. Returns (body, next page URL or None)."""
        session = await self._get_session()
        query = {"access_token": self.access_token, **(params or {})}

        try:
            async with session.get(url, params=query) as resp:
                if resp.status >= 400:
                    raise await self._error_for(resp)

                if binary:
                    body = await resp.read()
                else:
                    body = await resp.json(content_type=None)

                next_link = resp.links.get("next")
                next_url = next_link.get("url") if next_link else None
                return body, next_url

        except aiohttp.ClientError as e:
            logger.error(f"Mapbox API request failed: {e}")
            raise TransportError(f"Network error: {e}", url=str(url)) from e
        except asyncio.TimeoutError as e:
            raise TransportError("Request timed out", url=str(url)) from e

    async def _error_for(self, resp: aiohttp.ClientResponse) -> TransportError:
        """Build the error for a failed response."""
        message = f"HTTP {resp.status}"
        try:
            data = await resp.json(content_type=None)
            if isinstance(data, dict) and data.get("message"):
                message = f"HTTP {resp.status}: {data['message']}"
        except (aiohttp.ContentTypeError, ValueError):
            pass

        return classify_status(
            resp.status,
            message,
            url=str(resp.url),
            retry_after=self._parse_retry_after(resp.headers.get("Retry-After")),
        )

    def _pages(self, url: str, params: dict[str, Any] | None = None) -> FetchPage:
        """Build a fetch_page function for a list endpoint."""
        first_params = {"limit": self.page_limit, **(params or {})}

        async def fetch_page(page_ref: Any) -> Page:
            if page_ref is None:
                body, next_url = await self._request(url, first_params)
            else:
                # The next link already carries the paging query
                body, next_url = await self._request(page_ref)
            items = self._page_items(body)
            if items is None:
                error = TransportError(
                    f"Unexpected list response: {type(body).__name__}", url=str(page_ref or url)
                )
                return Page(error=error)
            return Page(items=items, next_page=next_url)

        return fetch_page

    # ==================== List APIs ====================

    def list_styles(self) -> FetchPage:
        return self._pages(self._url(self.STYLES_PATH), {"fresh": "true"})

    def list_tilesets(self) -> FetchPage:
        return self._pages(self._url(self.TILESETS_PATH))

    def list_datasets(self) -> FetchPage:
        return self._pages(self._url(self.DATASETS_PATH))

    def list_features(self, dataset_id: str) -> FetchPage:
        return self._pages(self._url(self.FEATURES_PATH, dataset_id=dataset_id))

    def list_tokens(self) -> FetchPage:
        return self._pages(self._url(self.TOKENS_PATH))

    # ==================== Item APIs ====================

    async def get_style(self, style_id: str, draft: bool = False) -> dict[str, Any]:
        """
        Get a full style document.

        Args:
            style_id: Style id
            draft: Fetch the unpublished draft instead of the published style
        """
        path = self.STYLE_PATH + ("/draft" if draft else "")
        body, _ = await self._request(self._url(path, style_id=style_id), {"fresh": "true"})
        return body

    async def get_style_sprite(
        self,
        style_id: str,
        format: str = "json",
        draft: bool = False,
        high_res: bool = False,
    ) -> dict[str, Any] | bytes:
        """
        Get a style's sprite index (JSON) or sprite sheet (PNG).

        Args:
            style_id: Style id
            format: "json" or "png"
            draft: Sprite of the draft style
            high_res: @2x variant
        """
        if format not in self.SPRITE_FORMATS:
            raise ValueError(f"Unsupported sprite format: {format}")

        path = self.STYLE_PATH + ("/draft" if draft else "")
        path += f"/sprite{'@2x' if high_res else ''}.{format}"
        body, _ = await self._request(
            self._url(path, style_id=style_id),
            {"fresh": "true"},
            binary=format == "png",
        )
        return body

    # ==================== Utility Methods ====================

    @staticmethod
    def _page_items(body: Any) -> list[dict[str, Any]] | None:
        """Items of a list page (plain array, or a FeatureCollection).

        None when the body is neither.
        """
        if isinstance(body, list):
            return body
        if isinstance(body, dict) and isinstance(body.get("features"), list):
            return body["features"]
        return None

    @staticmethod
    def _parse_retry_after(value: str | None) -> float | None:
        """Parse a Retry-After header given in seconds."""
        if not value:
            return None
        try:
            return max(0.0, float(value))
        except ValueError:
            return None
