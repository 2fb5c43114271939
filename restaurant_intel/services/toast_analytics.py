"""Sales analytics folded from Toast orders."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Set

from restaurant_intel.schemas import (
    AnalyticsSummary,
    PaymentMethodSummary,
    SalesTrendPoint,
    ToastOrder,
    TopItem,
)
from restaurant_intel.services.business_dates import (
    BUSINESS_DATE_FORMAT,
    DateRange,
    TimezoneInput,
    parse_business_date,
    parse_date_input,
    reference_timezone,
)

UNKNOWN_PAYMENT_TYPE = "UNKNOWN"


def compute_analytics(
    orders: Iterable[ToastOrder],
    date_range: Optional[DateRange] = None,
    *,
    top_n: int = 5,
    tz: TimezoneInput = None,
) -> AnalyticsSummary:
    """Aggregate revenue, hourly volume, payment mix and best sellers.

    Revenue is the sum of every check's ``totalAmount``. Hours and trend days
    are read in the restaurant timezone, so the result does not depend on where
    the server runs. Money values are rounded to cents.
    """

    zone = reference_timezone(tz)
    orders = list(orders)

    total_revenue = 0.0
    orders_by_hour = [0] * 24
    revenue_by_hour = [0.0] * 24
    payments: Dict[str, PaymentMethodSummary] = {}
    item_quantity: Counter[str] = Counter()
    item_revenue: Dict[str, float] = defaultdict(float)
    item_order: List[str] = []
    day_revenue: Dict[date, float] = defaultdict(float)
    day_orders: Counter[date] = Counter()
    customers: Set[str] = set()

    for order in orders:
        order_total = order.total_amount
        total_revenue += order_total

        opened = parse_date_input(order.opened_date, zone)
        if opened is not None:
            orders_by_hour[opened.hour] += 1
            revenue_by_hour[opened.hour] += order_total

        day = parse_business_date(order.business_date) or (opened.date() if opened is not None else None)
        if day is not None:
            day_revenue[day] += order_total
            day_orders[day] += 1

        for check in order.checks:
            if check.customer is not None and check.customer.guid:
                customers.add(check.customer.guid)
            for payment in check.payments:
                method = payment.type or UNKNOWN_PAYMENT_TYPE
                summary = payments.setdefault(method, PaymentMethodSummary())
                summary.count += 1
                summary.amount += payment.amount or 0.0
            for selection in check.selections:
                if selection.voided:
                    continue
                name = selection.item_name
                if name not in item_revenue:
                    item_order.append(name)
                item_quantity[name] += selection.quantity or 0
                item_revenue[name] += selection.price or 0.0

    total_orders = len(orders)
    for summary in payments.values():
        summary.amount = round(summary.amount, 2)

    # sorted() is stable, so ties keep first-seen order.
    ranked = sorted(item_order, key=lambda name: item_quantity[name], reverse=True)
    top_items = [
        TopItem(name=name, quantity=item_quantity[name], revenue=round(item_revenue[name], 2))
        for name in ranked[: max(top_n, 0)]
    ]

    return AnalyticsSummary(
        total_revenue=round(total_revenue, 2),
        total_orders=total_orders,
        average_order_value=round(total_revenue / total_orders, 2) if total_orders else 0.0,
        orders_by_hour=orders_by_hour,
        revenue_by_hour=[round(value, 2) for value in revenue_by_hour],
        payment_method_breakdown=payments,
        top_items=top_items,
        sales_trend=_build_sales_trend(day_revenue, day_orders, date_range),
        unique_customers=len(customers),
        date_range=date_range.as_dict() if date_range is not None else None,
    )


def _build_sales_trend(
    day_revenue: Dict[date, float],
    day_orders: Counter[date],
    date_range: Optional[DateRange],
) -> List[SalesTrendPoint]:
    days = date_range.days() if date_range is not None else sorted(day_orders)
    return [
        SalesTrendPoint(
            date=day.isoformat(),
            business_date=day.strftime(BUSINESS_DATE_FORMAT),
            revenue=round(day_revenue.get(day, 0.0), 2),
            orders=day_orders.get(day, 0),
        )
        for day in days
    ]


__all__ = ["compute_analytics"]
