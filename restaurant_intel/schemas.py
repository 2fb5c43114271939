from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from restaurant_intel.services.toast_errors import SyncFailure


class ToastModel(BaseModel):
    """Vendor-shaped record: camelCase on the wire, unknown fields kept as-is."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)


class ToastReference(ToastModel):
    guid: Optional[str] = None
    name: Optional[str] = None
    entity_type: Optional[str] = None


class ToastRestaurant(ToastModel):
    guid: Optional[str] = None
    restaurant_name: Optional[str] = None
    location_name: Optional[str] = None
    time_zone: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    general: Optional[Dict[str, Any]] = None
    location: Optional[Dict[str, Any]] = None

    @property
    def display_name(self) -> Optional[str]:
        general = self.general or {}
        return self.restaurant_name or general.get("name") or self.location_name or general.get("locationName")

    @property
    def timezone_name(self) -> Optional[str]:
        return self.time_zone or (self.general or {}).get("timeZone")

    @property
    def address_fields(self) -> Dict[str, Any]:
        return dict(self.address or self.location or {})


class ToastMenuItem(ToastModel):
    guid: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    plu: Optional[str] = None
    sku: Optional[str] = None
    visibility: Optional[Union[str, List[str]]] = None
    is_archived: Optional[bool] = False
    menu_group_name: Optional[str] = None


class ToastMenuGroup(ToastModel):
    guid: Optional[str] = None
    name: Optional[str] = None
    menu_items: List[ToastMenuItem] = Field(default_factory=list)
    menu_groups: List["ToastMenuGroup"] = Field(default_factory=list)


class ToastMenu(ToastModel):
    guid: Optional[str] = None
    name: Optional[str] = None
    menu_groups: List[ToastMenuGroup] = Field(default_factory=list)


class ToastCustomer(ToastModel):
    guid: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class ToastPayment(ToastModel):
    guid: Optional[str] = None
    type: Optional[str] = None
    amount: Optional[float] = None
    tip_amount: Optional[float] = None
    paid_date: Optional[str] = None
    card_type: Optional[str] = None


class ToastSelection(ToastModel):
    guid: Optional[str] = None
    item: Optional[ToastReference] = None
    display_name: Optional[str] = None
    quantity: Optional[float] = None
    price: Optional[float] = None
    voided: Optional[bool] = False

    @property
    def item_name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.item and self.item.name:
            return self.item.name
        return "Unknown item"


class ToastCheck(ToastModel):
    guid: Optional[str] = None
    amount: Optional[float] = None
    tax_amount: Optional[float] = None
    tip_amount: Optional[float] = None
    total_amount: Optional[float] = None
    opened_date: Optional[str] = None
    closed_date: Optional[str] = None
    voided: Optional[bool] = False
    deleted: Optional[bool] = False
    customer: Optional[ToastCustomer] = None
    selections: List[ToastSelection] = Field(default_factory=list)
    payments: List[ToastPayment] = Field(default_factory=list)


class ToastOrder(ToastModel):
    guid: str
    display_number: Optional[Union[str, int]] = None
    business_date: Optional[int] = None
    opened_date: Optional[str] = None
    closed_date: Optional[str] = None
    modified_date: Optional[str] = None
    deleted: Optional[bool] = False
    voided: Optional[bool] = False
    number_of_guests: Optional[int] = None
    restaurant_service: Optional[str] = None
    source: Optional[str] = None
    dining_option: Optional[ToastReference] = None
    checks: List[ToastCheck] = Field(default_factory=list)

    @property
    def total_amount(self) -> float:
        return sum(check.total_amount or 0.0 for check in self.checks)

    @property
    def payments(self) -> List[ToastPayment]:
        return [payment for check in self.checks for payment in check.payments]


class ToastEmployee(ToastModel):
    guid: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    deleted: Optional[bool] = False


class ToastTimeEntry(ToastModel):
    guid: Optional[str] = None
    employee_reference: Optional[ToastReference] = None
    job_reference: Optional[ToastReference] = None
    in_date: Optional[str] = None
    out_date: Optional[str] = None
    business_date: Optional[Union[int, str]] = None
    regular_hours: Optional[float] = None
    overtime_hours: Optional[float] = None
    deleted: Optional[bool] = False


class ToastShift(ToastModel):
    guid: Optional[str] = None
    employee_reference: Optional[ToastReference] = None
    job_reference: Optional[ToastReference] = None
    in_date: Optional[str] = None
    out_date: Optional[str] = None


class ToastConfigEntity(ToastModel):
    """Tax rates, dining options, tables, discounts, service charges, jobs."""

    guid: Optional[str] = None
    name: Optional[str] = None


class ToastInventoryItem(ToastModel):
    guid: Optional[str] = None
    status: Optional[str] = None
    quantity: Optional[float] = None


class Pagination(ToastModel):
    page_size: int
    pages_fetched: int
    total_results: int


class ToastResult(ToastModel):
    """Uniform outcome of a Toast call: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    pagination: Optional[Pagination] = None

    @classmethod
    def ok(cls, data: Any, pagination: Optional[Pagination] = None) -> "ToastResult":
        return cls(success=True, data=data, pagination=pagination)

    @classmethod
    def fail(cls, error: str, status_code: Optional[int] = None) -> "ToastResult":
        return cls(success=False, error=error, status_code=status_code)


class ConnectionTestResult(ToastModel):
    success: bool
    message: str
    details: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class PaymentMethodSummary(ToastModel):
    count: int = 0
    amount: float = 0.0


class TopItem(ToastModel):
    name: str
    quantity: float
    revenue: float


class SalesTrendPoint(ToastModel):
    date: str
    business_date: str
    revenue: float
    orders: int


class AnalyticsSummary(ToastModel):
    total_revenue: float = 0.0
    total_orders: int = 0
    average_order_value: float = 0.0
    orders_by_hour: List[int] = Field(default_factory=lambda: [0] * 24)
    revenue_by_hour: List[float] = Field(default_factory=lambda: [0.0] * 24)
    payment_method_breakdown: Dict[str, PaymentMethodSummary] = Field(default_factory=dict)
    top_items: List[TopItem] = Field(default_factory=list)
    sales_trend: List[SalesTrendPoint] = Field(default_factory=list)
    unique_customers: int = 0
    date_range: Optional[Dict[str, str]] = None


class SyncResult(ToastModel):
    success: bool = True
    restaurant: Optional[ToastRestaurant] = None
    menu_items: List[ToastMenuItem] = Field(default_factory=list)
    orders: List[ToastOrder] = Field(default_factory=list)
    customers: List[ToastCustomer] = Field(default_factory=list)
    time_entries: List[ToastTimeEntry] = Field(default_factory=list)
    errors: List[SyncFailure] = Field(default_factory=list)

    def counts(self) -> Dict[str, Any]:
        return {
            "restaurant": bool(self.restaurant),
            "menuItems": len(self.menu_items),
            "orders": len(self.orders),
            "customers": len(self.customers),
            "timeEntries": len(self.time_entries),
        }


ToastMenuGroup.model_rebuild()
