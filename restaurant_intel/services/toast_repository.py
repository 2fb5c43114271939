"""Persist synced Toast data into the Supabase tables used by the dashboard."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from httpx import HTTPError as HttpxError
from postgrest import APIError as PostgrestAPIError
from postgrest import SyncPostgrestClient

from restaurant_intel.config.supabase_client import persistence_enabled
from restaurant_intel.schemas import SyncResult, ToastCustomer, ToastMenuItem, ToastOrder, ToastRestaurant
from restaurant_intel.services.business_dates import TimezoneInput, parse_date_input
from restaurant_intel.services.postgrest_client import create_postgrest_client, postgrest_status

logger = logging.getLogger(__name__)

POS_SYSTEM = "toast"

ORDER_TYPES = {
    "DINEIN": "dine_in",
    "TAKEOUT": "takeout",
    "DELIVERY": "delivery",
    "CATERING": "catering",
    "OTHER": "other",
}

# table -> conflict column
TABLE_KEYS = {
    "restaurants": "pos_location_id",
    "menu_items": "pos_item_id",
    "transactions": "pos_transaction_id",
    "customers": "pos_customer_id",
}


def _slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def restaurant_row(restaurant: ToastRestaurant, location_id: str) -> Dict[str, Any]:
    address = restaurant.address_fields
    name = restaurant.display_name or "Toast restaurant"
    return {
        "pos_location_id": restaurant.guid or location_id,
        "pos_system": POS_SYSTEM,
        "name": name,
        "slug": _slugify(name),
        "address": address.get("address1") or "",
        "city": address.get("city") or "",
        "state": address.get("stateCode") or address.get("state") or "",
        "zip_code": address.get("zipCode") or "",
        "country": address.get("countryCode") or address.get("country") or "US",
        "phone": restaurant.phone_number or "",
        "timezone": restaurant.timezone_name,
        "status": "active",
    }


def menu_item_row(item: ToastMenuItem, location_id: str) -> Optional[Dict[str, Any]]:
    """Row for a menu item, or ``None`` when it is archived or has no GUID."""

    if item.is_archived or not item.guid:
        return None
    visibility = item.visibility
    hidden = visibility == "HIDDEN" or (isinstance(visibility, list) and not visibility)
    return {
        "pos_item_id": item.guid,
        "pos_location_id": location_id,
        "name": item.name or "",
        "description": item.description or "",
        "category": item.menu_group_name,
        "base_price": item.price or 0.0,
        "status": "inactive" if hidden else "active",
        "is_available": True,
    }


def payment_method(order: ToastOrder) -> str:
    payments = order.payments
    if not payments or not payments[0].type:
        return "unknown"
    return payments[0].type.lower()


def map_order_type(value: Optional[str]) -> str:
    if not value:
        return "other"
    key = re.sub(r"[^A-Z]", "", value.upper())
    return ORDER_TYPES.get(key, "other")


def transaction_row(order: ToastOrder, location_id: str, tz: TimezoneInput = None) -> Optional[Dict[str, Any]]:
    """Row for a completed order, or ``None`` for deleted or voided ones."""

    if order.deleted or order.voided:
        return None
    checks = order.checks
    total = round(sum(check.total_amount or 0.0 for check in checks), 2)
    tax = round(sum(check.tax_amount or 0.0 for check in checks), 2)
    tip = round(sum(check.tip_amount or 0.0 for check in checks), 2)
    opened = parse_date_input(order.opened_date, tz)
    order_type_source = (order.dining_option.name if order.dining_option else None) or order.restaurant_service
    return {
        "pos_transaction_id": order.guid,
        "pos_location_id": location_id,
        "total_amount": total,
        "subtotal": round(total - tax, 2),
        "tax_amount": tax,
        "tip_amount": tip,
        "transaction_date": opened.isoformat() if opened else None,
        "business_date": str(order.business_date) if order.business_date else None,
        "payment_method": payment_method(order),
        "order_type": map_order_type(order_type_source),
        "guest_count": order.number_of_guests or 1,
    }


def customer_row(customer: ToastCustomer, location_id: str) -> Optional[Dict[str, Any]]:
    """Row for a reachable customer, or ``None`` without email and phone."""

    if not customer.guid or not (customer.email or customer.phone):
        return None
    return {
        "pos_customer_id": customer.guid,
        "pos_location_id": location_id,
        "first_name": customer.first_name or "",
        "last_name": customer.last_name or "",
        "email": customer.email or "",
        "phone": customer.phone or "",
    }


def _compact(rows: Iterable[Optional[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [row for row in rows if row is not None]


class ToastRepository:
    """Upsert a :class:`SyncResult` into PostgREST, one table at a time."""

    def __init__(
        self,
        location_id: str,
        *,
        client: Optional[SyncPostgrestClient] = None,
        tz: TimezoneInput = None,
    ):
        self._location_id = location_id
        self._client = client
        self._tz = tz

    @property
    def enabled(self) -> bool:
        return self._client is not None or persistence_enabled()

    def _get_client(self) -> SyncPostgrestClient:
        if self._client is None:
            self._client = create_postgrest_client(prefer="resolution=merge-duplicates")
        return self._client

    def build_rows(self, sync: SyncResult) -> Dict[str, List[Dict[str, Any]]]:
        location_id = (sync.restaurant.guid if sync.restaurant else None) or self._location_id
        return {
            "restaurants": [restaurant_row(sync.restaurant, location_id)] if sync.restaurant else [],
            "menu_items": _compact(menu_item_row(item, location_id) for item in sync.menu_items),
            "transactions": _compact(transaction_row(order, location_id, self._tz) for order in sync.orders),
            "customers": _compact(customer_row(customer, location_id) for customer in sync.customers),
        }

    async def persist(self, sync: SyncResult) -> Dict[str, Any]:
        """Write every entity type independently and report what happened to each."""

        if not self.enabled:
            logger.warning("Supabase is not configured, skipping Toast persistence")
            return {"success": False, "enabled": False, "tables": {}}

        sources = {
            "restaurants": 1 if sync.restaurant else 0,
            "menu_items": len(sync.menu_items),
            "transactions": len(sync.orders),
            "customers": len(sync.customers),
        }
        tables: Dict[str, Dict[str, Any]] = {}
        stamp = datetime.now(timezone.utc).isoformat()
        for table, rows in self.build_rows(sync).items():
            for row in rows:
                row["updated_at"] = stamp
            entry: Dict[str, Any] = {"written": 0, "skipped": sources[table] - len(rows), "error": None}
            if rows:
                try:
                    entry["written"] = await self._upsert(table, rows)
                except PostgrestAPIError as exc:
                    logger.error("Supabase upsert into %s failed (%s): %s", table, postgrest_status(exc), exc.message)
                    entry["error"] = exc.message or "Supabase rejected the rows."
                except (HttpxError, RuntimeError) as exc:
                    logger.error("Supabase unreachable during %s upsert: %s", table, exc)
                    entry["error"] = str(exc)
            tables[table] = entry

        return {
            "success": all(entry["error"] is None for entry in tables.values()),
            "enabled": True,
            "tables": tables,
        }

    async def _upsert(self, table: str, rows: List[Dict[str, Any]]) -> int:
        def _request() -> int:
            response = (
                self._get_client()
                .from_(table)
                .upsert(rows, on_conflict=TABLE_KEYS[table])
                .execute()
            )
            data = getattr(response, "data", None)
            return len(data) if isinstance(data, list) and data else len(rows)

        return await asyncio.to_thread(_request)


__all__ = [
    "ToastRepository",
    "customer_row",
    "map_order_type",
    "menu_item_row",
    "payment_method",
    "restaurant_row",
    "transaction_row",
]
