"""Transparent pagination.

Turns a page-at-a-time endpoint into one completed collection. A page
that reports an error is recorded and the walk goes on as long as the
page still offers a continuation; a request that fails outright ends the
walk at that page.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from mapbox_backup.core.errors import ThrottleError, TransportError, is_throttling
from mapbox_backup.core.types import AggregatedError, DrainResult, FetchPage, Item, Page
from mapbox_backup.observability.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PageDrainer:
    """Drain a paginated endpoint into a single collection.

    Args:
        fetch_page: Called with None for the first page, then with the
            previous page's `next_page`
        on_page: Optional callback for every page received
    """

    fetch_page: FetchPage
    on_page: Callable[[Page], None] | None = None

    async def drain(self) -> DrainResult:
        items: list[Item] = []
        errors: list[Exception] = []
        pages = 0
        truncated = False
        page_ref: Any = None

        while True:
            try:
                page = await self.fetch_page(page_ref)
            except Exception as e:
                # No page means no continuation either
                logger.warning(f"Page {pages + 1} request failed: {e}")
                errors.append(e)
                truncated = True
                break

            pages += 1
            items.extend(page.items)
            if self.on_page is not None:
                self.on_page(page)

            if page.error is not None:
                logger.warning(f"Page {pages} reported an error: {page.error}")
                errors.append(page.error)

            if not page.has_next:
                truncated = page.error is not None
                break
            page_ref = page.next_page

        logger.debug(f"Drained {len(items)} items from {pages} pages", extra={"errors": len(errors)})
        return DrainResult(
            items=items,
            error=AggregatedError.from_errors(errors),
            pages=pages,
            truncated=truncated,
        )


async def drain_pages(
    fetch_page: FetchPage,
    on_page: Callable[[Page], None] | None = None,
) -> DrainResult:
    """Convenience wrapper around PageDrainer."""
    return await PageDrainer(fetch_page, on_page=on_page).drain()


async def drain_feature_collection(fetch_page: FetchPage) -> dict[str, Any]:
    """Drain a dataset's feature pages into one GeoJSON FeatureCollection.

    Raises:
        Exception: The page error when exactly one page failed, or a
            TransportError listing every failure otherwise
    """
    result = await drain_pages(fetch_page)
    if result.error is not None:
        raise as_exception(result.error)
    return {"type": "FeatureCollection", "features": result.items}


def as_exception(error: AggregatedError) -> Exception:
    """Collapse an aggregated error into one raisable exception.

    A single error is returned as-is so throttling stays recognizable to
    the scheduler; several errors that were all throttling become one
    ThrottleError.
    """
    if error.is_single:
        return error.first
    if all(is_throttling(e) for e in error):
        return ThrottleError(str(error))
    return TransportError(str(error))
