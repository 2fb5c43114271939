"""Toast POS endpoints consumed by the dashboard."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from restaurant_intel.schemas import ToastResult
from restaurant_intel.security.guards import SYNC_RATE_LIMIT, SYNC_RATE_WINDOW_SECONDS, rate_limit_request
from restaurant_intel.services.business_dates import DateRange, resolve_date_range
from restaurant_intel.services.toast_client import CONFIG_ENDPOINTS, ToastPOSClient
from restaurant_intel.services.toast_errors import ToastError
from restaurant_intel.services.toast_repository import ToastRepository
from restaurant_intel.services.toast_sync import ToastSyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/toast", tags=["Toast"])


async def get_toast_client(request: Request) -> ToastPOSClient:
    client = getattr(request.app.state, "toast_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Toast integration is not configured.")
    return client


async def get_toast_repository(client: ToastPOSClient = Depends(get_toast_client)) -> ToastRepository:
    credentials = client.credentials
    return ToastRepository(credentials.restaurant_guid, tz=credentials.tzinfo)


async def limit_sync_requests(request: Request) -> None:
    rate_limit_request(request, scope="toast-sync", limit=SYNC_RATE_LIMIT, window_seconds=SYNC_RATE_WINDOW_SECONDS)


def _date_range(
    client: ToastPOSClient,
    preset: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
) -> DateRange:
    return resolve_date_range(preset, start_date, end_date, now=client.now(), tz=client.credentials.tzinfo)


def _respond(result: ToastResult, *, not_found: Optional[str] = None) -> Dict[str, Any]:
    if not result.success:
        if not_found and result.status_code == 404:
            raise HTTPException(status_code=404, detail=not_found)
        raise HTTPException(status_code=502, detail=result.error or "Toast request failed.")
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/debug-config")
async def debug_config_endpoint(client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    return {"success": True, "data": client.describe_config()}


@router.get("/test-connection")
async def test_connection_endpoint(client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    outcome = await client.test_connection()
    if not outcome.success:
        raise HTTPException(status_code=502, detail=outcome.details or outcome.message)
    return outcome.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.get("/auth-status")
async def auth_status_endpoint(client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    try:
        await client.tokens.ensure_authenticated()
    except ToastError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"success": True, "data": client.tokens.describe()}


@router.get("/restaurant")
async def restaurant_endpoint(client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    return _respond(await client.get_restaurant())


@router.get("/menu-items")
async def menu_items_endpoint(client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    return _respond(await client.get_menu_items())


@router.get("/orders")
async def orders_endpoint(
    client: ToastPOSClient = Depends(get_toast_client),
    preset: Optional[str] = None,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    page_size: Optional[int] = Query(default=None, alias="pageSize", ge=1, le=100),
) -> Dict[str, Any]:
    date_range = _date_range(client, preset, start_date, end_date)
    result = await client.get_orders(date_range.start, date_range.end, page_size=page_size)
    payload = _respond(result)
    payload["dateRange"] = date_range.as_dict()
    return payload


@router.get("/orders/{order_guid}")
async def order_endpoint(order_guid: str, client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    return _respond(await client.get_order(order_guid), not_found=f"Order {order_guid} not found.")


@router.get("/customers")
async def customers_endpoint(
    client: ToastPOSClient = Depends(get_toast_client),
    page_size: Optional[int] = Query(default=None, alias="pageSize", ge=1, le=100),
) -> Dict[str, Any]:
    return _respond(await client.get_customers(page_size=page_size))


@router.get("/employees")
async def employees_endpoint(client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    return _respond(await client.get_employees())


@router.get("/time-entries")
async def time_entries_endpoint(
    client: ToastPOSClient = Depends(get_toast_client),
    business_date: Optional[str] = Query(default=None, alias="businessDate"),
) -> Dict[str, Any]:
    return _respond(await client.get_time_entries(business_date or None))


@router.get("/config/{name}")
async def config_endpoint(name: str, client: ToastPOSClient = Depends(get_toast_client)) -> Dict[str, Any]:
    if name not in CONFIG_ENDPOINTS:
        raise HTTPException(status_code=404, detail=f"Unknown configuration resource: {name}")
    return _respond(await client.get_config(name))


@router.get("/overview")
async def overview_endpoint(
    client: ToastPOSClient = Depends(get_toast_client),
    sample_size: int = Query(default=3, alias="sampleSize", ge=0, le=20),
) -> Dict[str, Any]:
    overview = await ToastSyncService(client).overview(sample_size)
    return {"success": True, "data": overview}


@router.get("/analytics")
async def analytics_endpoint(
    client: ToastPOSClient = Depends(get_toast_client),
    preset: Optional[str] = None,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
) -> Dict[str, Any]:
    date_range = _date_range(client, preset, start_date, end_date)
    return _respond(await ToastSyncService(client).analytics(date_range))


@router.post("/sync", dependencies=[Depends(limit_sync_requests)])
async def sync_endpoint(
    client: ToastPOSClient = Depends(get_toast_client),
    repository: ToastRepository = Depends(get_toast_repository),
    preset: Optional[str] = None,
    start_date: Optional[str] = Query(default=None, alias="startDate"),
    end_date: Optional[str] = Query(default=None, alias="endDate"),
    page_size: Optional[int] = Query(default=None, alias="pageSize", ge=1, le=100),
    persist: bool = False,
) -> Dict[str, Any]:
    date_range = _date_range(client, preset, start_date, end_date)
    sync = await ToastSyncService(client).sync_all(date_range, page_size=page_size)

    persistence = None
    if persist:
        persistence = await repository.persist(sync)

    return {
        "success": sync.success,
        "data": {
            "counts": sync.counts(),
            "errors": [failure.model_dump() for failure in sync.errors],
            "dateRange": date_range.as_dict(),
            "persistence": persistence,
        },
    }


__all__ = ["get_toast_client", "get_toast_repository", "router"]
