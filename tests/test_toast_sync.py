import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx

from restaurant_intel.services.business_dates import DateRange
from restaurant_intel.services.toast_sync import ToastSyncService

LA = ZoneInfo("America/Los_Angeles")

RESTAURANT_PATH = "/restaurants/v1/restaurants/c227349d-7778-4ec1-a8a6-0a1b2c3d4e5f"


def _seed(fake_toast):
    fake_toast.routes[RESTAURANT_PATH] = {"guid": "r-1", "restaurantName": "Harbor Grill"}
    fake_toast.routes["/menus/v2/menus"] = [
        {"menuGroups": [{"name": "Mains", "menuItems": [{"guid": "i-1", "name": "Burger"}]}]}
    ]
    fake_toast.routes["/orders/v2/ordersBulk"] = [
        {
            "guid": "o-1",
            "businessDate": 20231114,
            "openedDate": "2023-11-14T20:00:00.000+0000",
            "checks": [{"totalAmount": 25.0, "payments": [{"type": "CASH", "amount": 25.0}]}],
        }
    ]
    fake_toast.routes["/customers/v1/customers"] = [{"guid": "c-1", "email": "ana@example.com"}]
    fake_toast.routes["/labor/v1/timeEntries"] = [{"guid": "t-1", "regularHours": 7.5}]


def _run(make_client, call):
    async def scenario():
        async with make_client() as client:
            return await call(ToastSyncService(client))

    return asyncio.run(scenario())


def test_sync_all_collects_every_resource(fake_toast, make_client):
    _seed(fake_toast)

    sync = _run(make_client, lambda service: service.sync_all())

    assert sync.success
    assert sync.errors == []
    assert sync.counts() == {
        "restaurant": True,
        "menuItems": 1,
        "orders": 1,
        "customers": 1,
        "timeEntries": 1,
    }


def test_partial_failure_keeps_the_rest_of_the_data(fake_toast, make_client):
    _seed(fake_toast)
    fake_toast.routes["/customers/v1/customers"] = lambda request: httpx.Response(
        403, json={"message": "Missing scope guest.pi:read"}
    )

    sync = _run(make_client, lambda service: service.sync_all())

    assert sync.success
    assert sync.customers == []
    assert len(sync.orders) == 1
    assert [(failure.resource, failure.message) for failure in sync.errors] == [
        ("customers", "Missing scope guest.pi:read")
    ]


def test_sync_all_passes_the_range_to_orders(fake_toast, make_client):
    _seed(fake_toast)
    date_range = DateRange(datetime(2023, 11, 1, tzinfo=LA), datetime(2023, 11, 7, 23, 59, tzinfo=LA))

    _run(make_client, lambda service: service.sync_all(date_range))

    orders_request = next(r for r in fake_toast.api_requests() if r.url.path == "/orders/v2/ordersBulk")
    assert orders_request.url.params["startDate"] == "2023-11-01T00:00:00.000-0700"
    assert orders_request.url.params["endDate"] == "2023-11-07T23:59:59.999-0800"


def test_overview_reports_each_endpoint(fake_toast, make_client):
    _seed(fake_toast)
    del fake_toast.routes["/menus/v2/menus"]

    overview = _run(make_client, lambda service: service.overview(sample_size=1))

    endpoints = overview["endpoints"]
    assert endpoints["restaurant"]["success"] is True
    assert endpoints["restaurant"]["sample"][0]["restaurantName"] == "Harbor Grill"
    assert endpoints["menuItems"]["success"] is False
    assert endpoints["menuItems"]["count"] == 0
    assert endpoints["orders"]["count"] == 1
    assert overview["summary"]["successfulEndpoints"] == 3
    assert overview["summary"]["totalEndpoints"] == 4


def test_analytics_fails_when_orders_cannot_be_fetched(fake_toast, make_client):
    fake_toast.routes["/orders/v2/ordersBulk"] = lambda request: httpx.Response(500, json={"message": "Boom"})
    date_range = DateRange(datetime(2023, 11, 14, tzinfo=LA), datetime(2023, 11, 14, 23, 59, tzinfo=LA))

    result = _run(make_client, lambda service: service.analytics(date_range))

    assert not result.success
    assert result.error == "Boom"


def test_analytics_summarizes_the_range(fake_toast, make_client):
    _seed(fake_toast)
    date_range = DateRange(datetime(2023, 11, 14, tzinfo=LA), datetime(2023, 11, 14, 23, 59, tzinfo=LA))

    result = _run(make_client, lambda service: service.analytics(date_range))

    assert result.success
    assert result.data.total_revenue == 25.0
    assert result.data.orders_by_hour[12] == 1
    assert result.data.payment_method_breakdown["CASH"].count == 1
