"""Async client for the Toast POS REST API.

Every resource coroutine returns a :class:`ToastResult` instead of raising so
that callers fanning out over several endpoints can keep partial data. The
client owns a :class:`ToastTokenManager`; a 401 from Toast triggers exactly one
token refresh and one retry of the request.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import TypeAdapter, ValidationError

from restaurant_intel.config.toast_settings import ToastCredentials, mask_secret
from restaurant_intel.schemas import (
    ConnectionTestResult,
    Pagination,
    ToastConfigEntity,
    ToastCustomer,
    ToastEmployee,
    ToastInventoryItem,
    ToastMenu,
    ToastMenuGroup,
    ToastMenuItem,
    ToastOrder,
    ToastRestaurant,
    ToastResult,
    ToastShift,
    ToastTimeEntry,
)
from restaurant_intel.services.business_dates import (
    DateInput,
    TimezoneInput,
    coerce_datetime,
    current_time,
    is_same_business_day,
    to_business_date,
    to_vendor_timestamp,
)
from restaurant_intel.services.toast_auth import AccessToken, ToastTokenManager
from restaurant_intel.services.toast_errors import ApiRequestError, ToastError, vendor_error_message

logger = logging.getLogger(__name__)

RESTAURANT_HEADER = "Toast-Restaurant-External-ID"

# hard stop for endpoints that keep returning full pages
MAX_PAGES = 50

CONFIG_ENDPOINTS: Dict[str, str] = {
    "tax-rates": "/config/v2/taxRates",
    "dining-options": "/config/v2/diningOptions",
    "revenue-centers": "/config/v2/revenueCenters",
    "tables": "/config/v2/tables",
    "discounts": "/config/v2/discounts",
    "service-charges": "/config/v2/serviceCharges",
}

_RESTAURANT = TypeAdapter(ToastRestaurant)
_MENUS = TypeAdapter(List[ToastMenu])
_ORDERS = TypeAdapter(List[ToastOrder])
_ORDER = TypeAdapter(ToastOrder)
_CUSTOMERS = TypeAdapter(List[ToastCustomer])
_EMPLOYEES = TypeAdapter(List[ToastEmployee])
_SHIFTS = TypeAdapter(List[ToastShift])
_TIME_ENTRIES = TypeAdapter(List[ToastTimeEntry])
_CONFIG_ENTITIES = TypeAdapter(List[ToastConfigEntity])
_INVENTORY = TypeAdapter(List[ToastInventoryItem])


def build_order_params(
    start: Optional[DateInput],
    end: Optional[DateInput],
    *,
    now: datetime,
    tz: TimezoneInput,
) -> Dict[str, str]:
    """Query parameters selecting orders between ``start`` and ``end``.

    A range that stays inside one local calendar day is sent as a single
    ``businessDate``; anything longer uses ``startDate``/``endDate`` timestamps
    snapped to the local day bounds. With no dates at all, today is used.
    """

    if start is None and end is None:
        return {"businessDate": to_business_date(now, tz)}

    start_value = coerce_datetime(start if start is not None else end, tz)
    end_value = coerce_datetime(end if end is not None else start, tz)
    if start_value > end_value:
        start_value, end_value = end_value, start_value

    if is_same_business_day(start_value, end_value, tz):
        return {"businessDate": to_business_date(start_value, tz)}
    return {
        "startDate": to_vendor_timestamp(start_value, True, tz),
        "endDate": to_vendor_timestamp(end_value, False, tz),
    }


def flatten_menu_items(menus: List[ToastMenu]) -> List[ToastMenuItem]:
    """Walk nested menu groups and return every item, tagged with its group name."""

    items: List[ToastMenuItem] = []

    def _walk(group: ToastMenuGroup) -> None:
        for item in group.menu_items:
            if not item.menu_group_name:
                item.menu_group_name = group.name
            items.append(item)
        for child in group.menu_groups:
            _walk(child)

    for menu in menus:
        for group in menu.menu_groups:
            _walk(group)
    return items


class ToastPOSClient:
    """Read-only Toast API client bound to one restaurant location."""

    def __init__(
        self,
        credentials: ToastCredentials,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._credentials = credentials
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(credentials.request_timeout))
        self._clock = clock
        self.tokens = ToastTokenManager(credentials, self._http, clock=clock)

    @property
    def credentials(self) -> ToastCredentials:
        return self._credentials

    async def __aenter__(self) -> "ToastPOSClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def now(self) -> datetime:
        return current_time(datetime.fromtimestamp(self._clock(), tz=timezone.utc), self._credentials.tzinfo)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _headers(self, token: AccessToken) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token.value}",
            RESTAURANT_HEADER: self._credentials.restaurant_guid,
            "Accept": "application/json",
        }

    async def with_auth_retry(
        self,
        send: Callable[[AccessToken], Awaitable[httpx.Response]],
        *,
        path: str,
    ) -> httpx.Response:
        """Run ``send`` with a valid token, refreshing and retrying once on a 401."""

        token = await self.tokens.ensure_authenticated()
        response = await send(token)
        if response.status_code != 401:
            return response

        logger.warning(
            "Toast rejected the access token, re-authenticating once",
            extra={"path": path, "status_code": response.status_code},
        )
        self.tokens.invalidate()
        token = await self.tokens.authenticate()
        response = await send(token)
        if response.status_code == 401:
            raise ApiRequestError(
                "Toast rejected the refreshed access token.",
                status_code=401,
                path=path,
            )
        return response

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self._credentials.base_url}{path}"

        async def _send(token: AccessToken) -> httpx.Response:
            try:
                return await self._http.get(url, params=params, headers=self._headers(token))
            except httpx.TimeoutException as exc:
                raise ApiRequestError(
                    f"Toast request timed out after {self._credentials.request_timeout:g}s",
                    path=path,
                ) from exc
            except httpx.HTTPError as exc:  # pragma: no cover - network layer
                raise ApiRequestError(f"Unable to reach Toast: {exc}", path=path) from exc

        response = await self.with_auth_retry(_send, path=path)

        try:
            body = response.json()
        except ValueError:
            body = response.text

        if not response.is_success:
            message = vendor_error_message(body) or f"HTTP {response.status_code}"
            raise ApiRequestError(message, status_code=response.status_code, path=path)
        if isinstance(body, str) and body:
            raise ApiRequestError("Toast returned a non-JSON response.", status_code=response.status_code, path=path)
        return body

    async def _get_paginated(
        self,
        path: str,
        params: Dict[str, Any],
        *,
        page_size: int,
        max_pages: Optional[int] = None,
    ) -> Tuple[List[Any], Pagination]:
        limit = max_pages or MAX_PAGES
        records: List[Any] = []
        previous_first: Optional[str] = None
        page = 1
        while True:
            body = await self._get(path, {**params, "page": page, "pageSize": page_size})
            if body in (None, ""):
                body = []
            if not isinstance(body, list):
                raise ApiRequestError(f"Expected a list from {path}.", path=path)
            first = _record_guid(body[0]) if body else None
            if page > 1 and first is not None and first == previous_first:
                logger.warning(
                    "Toast ignored the page parameter, stopping pagination",
                    extra={"path": path, "page": page},
                )
                page -= 1
                break
            records.extend(body)
            previous_first = first
            if len(body) < page_size:
                break
            if page >= limit:
                if max_pages is None:
                    logger.warning(
                        "Stopped Toast pagination at the %s page cap",
                        MAX_PAGES,
                        extra={"path": path, "records": len(records)},
                    )
                break
            page += 1
        return records, Pagination(page_size=page_size, pages_fetched=page, total_results=len(records))

    async def _fetch(
        self,
        resource: str,
        path: str,
        adapter: TypeAdapter,
        params: Optional[Dict[str, Any]] = None,
    ) -> ToastResult:
        logger.info("Fetching Toast %s", resource)
        try:
            body = await self._get(path, params)
            data = _validate(adapter, body if body not in (None, "") else [], resource)
        except ToastError as exc:
            logger.error("Toast %s request failed: %s", resource, exc)
            return ToastResult.fail(str(exc), getattr(exc, "status_code", None))
        return ToastResult.ok(data)

    async def _fetch_paginated(
        self,
        resource: str,
        path: str,
        adapter: TypeAdapter,
        params: Dict[str, Any],
        *,
        page_size: Optional[int],
        max_pages: Optional[int],
    ) -> ToastResult:
        size = page_size or self._credentials.page_size
        logger.info("Fetching Toast %s (pageSize=%s)", resource, size)
        try:
            records, pagination = await self._get_paginated(path, params, page_size=size, max_pages=max_pages)
            data = _validate(adapter, records, resource)
        except ToastError as exc:
            logger.error("Toast %s request failed: %s", resource, exc)
            return ToastResult.fail(str(exc), getattr(exc, "status_code", None))
        logger.info("Fetched %s Toast %s over %s page(s)", pagination.total_results, resource, pagination.pages_fetched)
        return ToastResult.ok(data, pagination)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------
    async def get_restaurant(self) -> ToastResult:
        path = f"/restaurants/v1/restaurants/{self._credentials.restaurant_guid}"
        return await self._fetch("restaurant", path, _RESTAURANT)

    async def get_menus(self) -> ToastResult:
        return await self._fetch("menus", "/menus/v2/menus", _MENUS)

    async def get_menu_items(self) -> ToastResult:
        result = await self.get_menus()
        if not result.success:
            return result
        return ToastResult.ok(flatten_menu_items(result.data))

    async def get_orders(
        self,
        start: Optional[DateInput] = None,
        end: Optional[DateInput] = None,
        *,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ) -> ToastResult:
        try:
            params = build_order_params(start, end, now=self.now(), tz=self._credentials.tzinfo)
        except ValueError as exc:
            logger.error("Invalid order date range %r..%r: %s", start, end, exc)
            return ToastResult.fail(f"Invalid date range: {exc}")
        return await self._fetch_paginated(
            "orders",
            "/orders/v2/ordersBulk",
            _ORDERS,
            params,
            page_size=page_size,
            max_pages=max_pages,
        )

    async def get_order(self, order_guid: str) -> ToastResult:
        return await self._fetch("order", f"/orders/v2/orders/{order_guid}", _ORDER)

    async def get_customers(self, *, page_size: Optional[int] = None, max_pages: Optional[int] = None) -> ToastResult:
        return await self._fetch_paginated(
            "customers",
            "/customers/v1/customers",
            _CUSTOMERS,
            {},
            page_size=page_size,
            max_pages=max_pages,
        )

    async def get_employees(self) -> ToastResult:
        return await self._fetch("employees", "/labor/v1/employees", _EMPLOYEES)

    async def get_jobs(self) -> ToastResult:
        return await self._fetch("jobs", "/labor/v1/jobs", _CONFIG_ENTITIES)

    async def get_shifts(self, business_date: Optional[DateInput] = None) -> ToastResult:
        tz = self._credentials.tzinfo
        try:
            day = coerce_datetime(business_date, tz) if business_date is not None else self.now()
        except ValueError as exc:
            return ToastResult.fail(f"Invalid business date: {exc}")
        params = {
            "startDate": to_vendor_timestamp(day, True, tz),
            "endDate": to_vendor_timestamp(day, False, tz),
        }
        return await self._fetch("shifts", "/labor/v1/shifts", _SHIFTS, params)

    async def get_time_entries(self, business_date: Optional[DateInput] = None) -> ToastResult:
        tz = self._credentials.tzinfo
        try:
            day = to_business_date(business_date if business_date is not None else self.now(), tz)
        except ValueError as exc:
            return ToastResult.fail(f"Invalid business date: {exc}")
        return await self._fetch("time entries", "/labor/v1/timeEntries", _TIME_ENTRIES, {"businessDate": day})

    async def get_config(self, name: str) -> ToastResult:
        """Fetch one of the ``/config/v2`` collections listed in ``CONFIG_ENDPOINTS``."""

        path = CONFIG_ENDPOINTS.get(name)
        if path is None:
            return ToastResult.fail(f"Unknown Toast configuration resource: {name}")
        return await self._fetch(name.replace("-", " "), path, _CONFIG_ENTITIES)

    async def get_tax_rates(self) -> ToastResult:
        return await self.get_config("tax-rates")

    async def get_dining_options(self) -> ToastResult:
        return await self.get_config("dining-options")

    async def get_revenue_centers(self) -> ToastResult:
        return await self.get_config("revenue-centers")

    async def get_tables(self) -> ToastResult:
        return await self.get_config("tables")

    async def get_discounts(self) -> ToastResult:
        return await self.get_config("discounts")

    async def get_service_charges(self) -> ToastResult:
        return await self.get_config("service-charges")

    async def get_stock_counts(self) -> ToastResult:
        return await self._fetch("stock counts", "/stock/v1/inventory", _INVENTORY)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    async def test_connection(self) -> ConnectionTestResult:
        """Authenticate and read the restaurant record."""

        try:
            await self.tokens.ensure_authenticated()
        except ToastError as exc:
            logger.error("Toast connection test failed during authentication: %s", exc)
            return ConnectionTestResult(success=False, message="Authentication failed", details=str(exc))

        result = await self.get_restaurant()
        if not result.success:
            return ConnectionTestResult(
                success=False,
                message="Authenticated but the restaurant could not be read",
                details=result.error,
            )

        restaurant: ToastRestaurant = result.data
        return ConnectionTestResult(
            success=True,
            message="Connected to Toast",
            data={
                "restaurantGuid": self._credentials.restaurant_guid,
                "restaurantName": restaurant.display_name,
                "timezone": restaurant.timezone_name or self._credentials.timezone,
            },
        )

    def describe_config(self) -> Dict[str, Any]:
        """Masked view of the active configuration, safe to expose for debugging."""

        creds = self._credentials
        return {
            "clientId": mask_secret(creds.client_id),
            "clientSecret": mask_secret(creds.client_secret),
            "clientSecretCount": len(creds.client_secrets),
            "restaurantGuid": mask_secret(creds.restaurant_guid),
            "baseUrl": creds.base_url,
            "timezone": creds.timezone,
            "requestTimeout": creds.request_timeout,
            "pageSize": creds.page_size,
            "auth": self.tokens.describe(),
        }


def _record_guid(record: Any) -> Optional[str]:
    if isinstance(record, dict):
        guid = record.get("guid")
        return str(guid) if guid else None
    return None


def _validate(adapter: TypeAdapter, body: Any, resource: str) -> Any:
    try:
        return adapter.validate_python(body)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise ApiRequestError(f"Invalid {resource} payload: {location}: {first.get('msg')}") from exc


__all__ = [
    "CONFIG_ENDPOINTS",
    "MAX_PAGES",
    "RESTAURANT_HEADER",
    "ToastPOSClient",
    "build_order_params",
    "flatten_menu_items",
]
