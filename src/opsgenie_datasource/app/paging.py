from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# OpsGenie list endpoints cap `limit` at 100.
PAGE_SIZE = 100

PageFetcher = Callable[[dict[str, Any]], Awaitable[list[dict[str, Any]]]]


@dataclass(frozen=True)
class PagedResult:
    items: list[dict[str, Any]] = field(default_factory=list)
    pages_requested: int = 0
    # Error that stopped pagination early; None when every page was read.
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.error is None


async def fetch_all_pages(
    fetch_page: PageFetcher,
    *,
    query: str = "",
    sort: str | None = None,
    order: str = "desc",
    page_size: int = PAGE_SIZE,
    extra_params: dict[str, Any] | None = None,
) -> PagedResult:
    """Read every page of an offset-paginated OpsGenie list call.

    Pages are requested one after another and concatenated in request order.
    The list responses carry no total count, so the loop ends on the first
    page shorter than `page_size`; an exact multiple costs one extra empty
    page request. A failing page stops the loop and the items read so far are
    returned with `error` set. There is no retry.
    """
    base_params: dict[str, Any] = dict(extra_params or {})
    base_params["query"] = query
    if sort:
        base_params["sort"] = sort
    base_params["order"] = order

    items: list[dict[str, Any]] = []
    pages_requested = 0
    offset = 0
    while True:
        params = {**base_params, "offset": offset, "limit": page_size, "direction": "next"}
        pages_requested += 1
        try:
            page = await fetch_page(params)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "paged_fetch event=page_failed offset=%s items_so_far=%s error=%s",
                offset,
                len(items),
                exc,
            )
            return PagedResult(items=items, pages_requested=pages_requested, error=str(exc))

        items.extend(page)
        logger.debug(
            "paged_fetch event=page_read offset=%s page_items=%s total_items=%s",
            offset,
            len(page),
            len(items),
        )
        if len(page) < page_size:
            return PagedResult(items=items, pages_requested=pages_requested)
        offset += page_size
