"""Concurrent fan-out over Toast resources."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, Optional, Tuple

from restaurant_intel.schemas import SyncResult, ToastResult
from restaurant_intel.services.business_dates import DateRange
from restaurant_intel.services.toast_analytics import compute_analytics
from restaurant_intel.services.toast_client import ToastPOSClient
from restaurant_intel.services.toast_errors import SyncFailure

logger = logging.getLogger(__name__)


class ToastSyncService:
    """Pull several Toast resources at once and tolerate partial failures."""

    def __init__(self, client: ToastPOSClient):
        self._client = client

    async def sync_all(self, date_range: Optional[DateRange] = None, *, page_size: Optional[int] = None) -> SyncResult:
        """Fetch restaurant, menu items, orders, customers and time entries concurrently.

        A resource that fails contributes nothing and one ``SyncFailure``; the
        sync as a whole still succeeds.
        """

        start = date_range.start if date_range is not None else None
        end = date_range.end if date_range is not None else None
        outcomes = await _gather_results(
            [
                ("restaurant", self._client.get_restaurant()),
                ("menuItems", self._client.get_menu_items()),
                ("orders", self._client.get_orders(start, end, page_size=page_size)),
                ("customers", self._client.get_customers(page_size=page_size)),
                ("timeEntries", self._client.get_time_entries(start)),
            ]
        )

        sync = SyncResult()
        for resource, result in outcomes.items():
            if not result.success:
                sync.errors.append(SyncFailure(resource=resource, message=result.error or "Unknown error"))
                continue
            if resource == "restaurant":
                sync.restaurant = result.data
            elif resource == "menuItems":
                sync.menu_items = list(result.data or [])
            elif resource == "orders":
                sync.orders = list(result.data or [])
            elif resource == "customers":
                sync.customers = list(result.data or [])
            elif resource == "timeEntries":
                sync.time_entries = list(result.data or [])

        if sync.errors:
            logger.warning(
                "Toast sync finished with %d failed resource(s): %s",
                len(sync.errors),
                ", ".join(failure.resource for failure in sync.errors),
            )
        logger.info("Toast sync counts: %s", sync.counts())
        return sync

    async def overview(self, sample_size: int = 3) -> Dict[str, Any]:
        """Per-endpoint status with a small sample of each resource."""

        outcomes = await _gather_results(
            [
                ("restaurant", self._client.get_restaurant()),
                ("menuItems", self._client.get_menu_items()),
                ("orders", self._client.get_orders(max_pages=1)),
                ("customers", self._client.get_customers(max_pages=1)),
            ]
        )

        endpoints: Dict[str, Dict[str, Any]] = {}
        for resource, result in outcomes.items():
            if not result.success:
                endpoints[resource] = {"success": False, "count": 0, "sample": [], "error": result.error}
                continue
            records = result.data if isinstance(result.data, list) else [result.data]
            endpoints[resource] = {
                "success": True,
                "count": len(records),
                "sample": [_dump(record) for record in records[: max(sample_size, 0)]],
                "error": None,
            }

        successful = [name for name, entry in endpoints.items() if entry["success"]]
        return {
            "endpoints": endpoints,
            "summary": {
                "totalEndpoints": len(endpoints),
                "successfulEndpoints": len(successful),
                "available": successful,
            },
        }

    async def analytics(self, date_range: DateRange, *, top_n: int = 5) -> ToastResult:
        result = await self._client.get_orders(date_range.start, date_range.end)
        if not result.success:
            return ToastResult.fail(result.error or "Unable to fetch orders")
        summary = compute_analytics(
            result.data or [],
            date_range,
            top_n=top_n,
            tz=self._client.credentials.tzinfo,
        )
        return ToastResult.ok(summary)


async def _gather_results(calls: List[Tuple[str, Awaitable[ToastResult]]]) -> Dict[str, ToastResult]:
    names = [name for name, _ in calls]
    settled = await asyncio.gather(*(call for _, call in calls), return_exceptions=True)
    outcomes: Dict[str, ToastResult] = {}
    for name, outcome in zip(names, settled):
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, Exception):
            logger.error("Toast %s fetch raised unexpectedly: %s", name, outcome, exc_info=outcome)
            outcomes[name] = ToastResult.fail(str(outcome) or outcome.__class__.__name__)
        else:
            outcomes[name] = outcome
    return outcomes


def _dump(record: Any) -> Any:
    if hasattr(record, "model_dump"):
        return record.model_dump(mode="json", by_alias=True, exclude_none=True)
    return record


__all__ = ["ToastSyncService"]
