import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from restaurant_intel.services.business_dates import (
    DateRange,
    coerce_datetime,
    is_same_business_day,
    parse_business_date,
    preset_to_range,
    resolve_date_range,
    to_business_date,
    to_vendor_timestamp,
)

LA = ZoneInfo("America/Los_Angeles")


def test_today_covers_the_whole_local_day():
    now = datetime(2024, 1, 15, 14, 30, tzinfo=LA)

    rng = preset_to_range("today", now, LA)

    assert rng.start == datetime(2024, 1, 15, 0, 0, tzinfo=LA)
    assert rng.end == datetime(2024, 1, 15, 23, 59, 59, 999000, tzinfo=LA)
    assert to_vendor_timestamp(rng.start, True, LA) == "2024-01-15T00:00:00.000-0800"
    assert to_vendor_timestamp(rng.end, False, LA) == "2024-01-15T23:59:59.999-0800"
    assert rng.is_single_business_day


def test_yesterday_and_last7days():
    now = datetime(2024, 1, 15, 14, 30, tzinfo=LA)

    yesterday = preset_to_range("yesterday", now, LA)
    last7 = preset_to_range("last7days", now, LA)

    assert yesterday.start.date() == date(2024, 1, 14)
    assert yesterday.end.date() == date(2024, 1, 14)
    assert last7.end == now
    assert last7.start == now - timedelta(days=7)


def test_lastweek_on_a_wednesday_ends_before_the_latest_sunday():
    wednesday = datetime(2024, 1, 17, 10, 0, tzinfo=LA)

    rng = preset_to_range("lastweek", wednesday, LA)

    assert rng.end.date() == date(2024, 1, 7)
    assert rng.start.date() == date(2024, 1, 1)
    assert rng.start.weekday() == 0
    assert rng.end.weekday() == 6


def test_lastweek_on_a_sunday_skips_back_a_full_week():
    sunday = datetime(2024, 1, 14, 10, 0, tzinfo=LA)

    rng = preset_to_range("lastweek", sunday, LA)

    assert rng.end.date() == date(2024, 1, 7)
    assert rng.start.date() == date(2024, 1, 1)


def test_unknown_preset_raises():
    with pytest.raises(ValueError):
        preset_to_range("fortnight", datetime(2024, 1, 15, tzinfo=LA), LA)


def test_summer_offset_comes_from_the_timezone_database():
    assert to_vendor_timestamp(date(2024, 7, 4), True, LA) == "2024-07-04T00:00:00.000-0700"
    assert to_vendor_timestamp(date(2024, 7, 4), False, "UTC") == "2024-07-04T23:59:59.999+0000"


def test_business_date_uses_the_restaurant_day_not_utc():
    late_evening_utc = datetime(2024, 1, 16, 5, 30, tzinfo=timezone.utc)

    assert to_business_date(late_evening_utc, LA) == "20240115"
    assert to_business_date(late_evening_utc, "UTC") == "20240116"


def test_same_business_day_compares_local_dates():
    start = datetime(2024, 1, 15, 8, 0, tzinfo=timezone.utc)
    end = datetime(2024, 1, 16, 7, 59, tzinfo=timezone.utc)

    assert is_same_business_day(start, end, LA)
    assert not is_same_business_day(start, end + timedelta(minutes=2), LA)


def test_vendor_timestamps_sort_lexicographically_within_a_range():
    rng = DateRange(datetime(2024, 3, 1, tzinfo=LA), datetime(2024, 3, 5, tzinfo=LA))
    payload = rng.as_dict()

    assert payload["startTimestamp"] < payload["endTimestamp"]
    assert payload["start"] == "2024-03-01"
    assert payload["end"] == "2024-03-05"


def test_coerce_datetime_accepts_toast_and_compact_formats():
    toast_value = coerce_datetime("2024-01-15T12:30:00.000+0000", LA)
    compact_value = coerce_datetime("20240115", LA)
    zulu_value = coerce_datetime("2024-01-15T20:00:00Z", LA)

    assert toast_value == datetime(2024, 1, 15, 4, 30, tzinfo=LA)
    assert compact_value == datetime(2024, 1, 15, 0, 0, tzinfo=LA)
    assert zulu_value.hour == 12


def test_parse_business_date():
    assert parse_business_date(20240115) == date(2024, 1, 15)
    assert parse_business_date("2024-01-15") is None
    assert parse_business_date(None) is None


def test_date_range_rejects_reversed_bounds():
    with pytest.raises(ValueError):
        DateRange(datetime(2024, 1, 2, tzinfo=LA), datetime(2024, 1, 1, tzinfo=LA))


def test_resolve_prefers_explicit_dates_and_swaps_reversed_ones():
    now = datetime(2024, 1, 15, 9, 0, tzinfo=LA)

    rng = resolve_date_range("yesterday", "2024-01-10", "2024-01-03", now=now, tz=LA)

    assert rng.start == datetime(2024, 1, 3, 0, 0, tzinfo=LA)
    assert rng.end.date() == date(2024, 1, 10)


def test_resolve_falls_back_to_today_on_bad_input():
    now = datetime(2024, 1, 15, 9, 0, tzinfo=LA)

    unparseable = resolve_date_range(None, "not-a-date", None, now=now, tz=LA)
    unknown = resolve_date_range("someday", now=now, tz=LA)

    assert unparseable.start.date() == date(2024, 1, 15)
    assert unknown.start.date() == date(2024, 1, 15)
    assert unknown.is_single_business_day


def test_resolve_with_a_single_side_uses_one_day():
    rng = resolve_date_range(end_date="20240120", now=datetime(2024, 1, 25, tzinfo=LA), tz=LA)

    assert rng.days() == [date(2024, 1, 20)]


def test_resolve_warns_when_one_side_is_unparseable(caplog):
    with caplog.at_level(logging.WARNING, logger="restaurant_intel.services.business_dates"):
        rng = resolve_date_range(
            None, "2024-01-12", "garbage", now=datetime(2024, 1, 25, tzinfo=LA), tz=LA
        )

    assert rng.days() == [date(2024, 1, 12)]
    assert "'garbage'" in caplog.text


def test_today_from_a_utc_instant_uses_the_restaurant_day():
    now = datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc)

    rng = preset_to_range("today", now, LA)

    assert to_business_date(rng.start, LA) == "20240115"
    assert to_business_date(now, LA) == "20240115"
