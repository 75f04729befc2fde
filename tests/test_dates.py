from datetime import datetime, timedelta, timezone

import pytest

from backend.studio_reports.dates import (
    EpochMillis,
    Instant,
    IsoString,
    LegacyTimestamp,
    compute_time_window,
    coerce_timezone,
    days_between_ceil,
    month_week_buckets,
    parse_date,
    sunday_week_start,
    to_date_value,
    weekday_index_from_sunday_based,
)


class TestDateValueParsing:
    """Raw store values are normalised to aware datetimes in the studio zone."""

    def test_classifies_raw_values(self):
        assert isinstance(to_date_value("2024-05-15"), IsoString)
        assert isinstance(to_date_value(1715763600000), EpochMillis)
        assert isinstance(to_date_value({"seconds": 1, "nanoseconds": 0}), LegacyTimestamp)
        assert isinstance(to_date_value(datetime(2024, 5, 15)), Instant)

    def test_empty_and_unknown_values_are_absent(self, tz):
        assert parse_date(None, tz) is None
        assert parse_date("", tz) is None
        assert parse_date(True, tz) is None
        assert parse_date("not a date", tz) is None
        assert parse_date(["2024-05-15"], tz) is None

    def test_utc_iso_string_is_converted_to_local_time(self, tz):
        parsed = parse_date("2024-05-15T09:00:00Z", tz)

        assert parsed == datetime(2024, 5, 15, 12, 0, tzinfo=tz)
        assert parsed.tzinfo == tz

    def test_date_only_string_is_local_midnight(self, tz):
        assert parse_date("2024-05-15", tz) == datetime(2024, 5, 15, tzinfo=tz)

    def test_epoch_millis_and_legacy_timestamp_agree(self, tz):
        instant = datetime(2024, 5, 15, 9, 0, tzinfo=timezone.utc)
        seconds = int(instant.timestamp())

        from_millis = parse_date(seconds * 1000, tz)
        from_legacy = parse_date({"seconds": seconds, "nanoseconds": 0}, tz)
        from_exported = parse_date({"_seconds": seconds, "_nanoseconds": 0}, tz)

        assert from_millis == from_legacy == from_exported == instant

    def test_out_of_range_values_are_absent(self, tz):
        assert parse_date({"seconds": float("inf")}, tz) is None
        assert parse_date({"seconds": 10**400}, tz) is None
        assert parse_date(10**400, tz) is None
        assert parse_date(float("nan"), tz) is None

    def test_unknown_timezone_falls_back_to_utc(self):
        assert str(coerce_timezone("Mars/Olympus")) == "UTC"


class TestTimeWindow:
    def test_boundaries_around_reference(self, now, tz):
        window = compute_time_window(now)

        assert window.day_start == datetime(2024, 5, 15, tzinfo=tz)
        assert window.day_end == datetime(2024, 5, 16, tzinfo=tz)
        assert window.week_start == datetime(2024, 5, 13, tzinfo=tz)
        assert window.week_end == datetime(2024, 5, 20, tzinfo=tz)
        assert window.month_start == datetime(2024, 5, 1, tzinfo=tz)
        assert window.month_end == datetime(2024, 6, 1, tzinfo=tz)

    def test_sunday_reference_belongs_to_the_previous_monday_week(self, tz):
        window = compute_time_window(datetime(2024, 5, 19, 23, 0, tzinfo=tz))

        assert window.week_start == datetime(2024, 5, 13, tzinfo=tz)

    def test_december_rolls_into_next_year(self, tz):
        window = compute_time_window(datetime(2024, 12, 31, 8, 0, tzinfo=tz))

        assert window.month_end == datetime(2025, 1, 1, tzinfo=tz)

    def test_naive_reference_uses_default_zone(self, tz):
        window = compute_time_window(datetime(2024, 5, 15, 12, 0))

        assert window.now == datetime(2024, 5, 15, 12, 0, tzinfo=tz)

    def test_sunday_based_day_numbers_map_to_monday_first(self):
        assert weekday_index_from_sunday_based(0) == 6
        assert weekday_index_from_sunday_based(1) == 0
        assert weekday_index_from_sunday_based(6) == 5

    def test_sunday_week_start(self, now, tz):
        assert sunday_week_start(now) == datetime(2024, 5, 12, tzinfo=tz)
        assert sunday_week_start(datetime(2024, 5, 12, 9, 0, tzinfo=tz)) == datetime(2024, 5, 12, tzinfo=tz)

    def test_month_buckets_cover_the_whole_month(self, now, tz):
        buckets = month_week_buckets(now)

        assert len(buckets) == 4
        assert [start.day for start, _ in buckets] == [1, 8, 15, 22]
        assert buckets[-1][1] == datetime(2024, 6, 1, tzinfo=tz)
        for (_, end), (start, _) in zip(buckets, buckets[1:]):
            assert end == start

    @pytest.mark.parametrize(
        "reference, month_end, last_bucket_days",
        [
            (datetime(2024, 2, 10, 9, 0), datetime(2024, 3, 1), 8),
            (datetime(2023, 2, 28, 23, 0), datetime(2023, 3, 1), 7),
            (datetime(2024, 4, 1, 0, 0), datetime(2024, 5, 1), 9),
        ],
    )
    def test_month_buckets_for_short_and_leap_months(self, tz, reference, month_end, last_bucket_days):
        buckets = month_week_buckets(reference.replace(tzinfo=tz))
        last_start, last_end = buckets[-1]

        assert [start.day for start, _ in buckets] == [1, 8, 15, 22]
        assert buckets[0][0] == reference.replace(day=1, hour=0, minute=0, tzinfo=tz)
        assert last_end == month_end.replace(tzinfo=tz)
        assert (last_end - last_start).days == last_bucket_days


class TestDaysBetweenCeil:
    def test_partial_days_round_up(self, now):
        assert days_between_ceil(now + timedelta(hours=1), now) == 1
        assert days_between_ceil(now + timedelta(days=7), now) == 7
        assert days_between_ceil(now, now) == 0

    def test_past_values_round_toward_zero(self, now):
        assert days_between_ceil(now - timedelta(hours=1), now) == 0
        assert days_between_ceil(now - timedelta(hours=25), now) == -1
        assert days_between_ceil(now - timedelta(days=10), now) == -10
