from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from agent_insights.domain.date_window import (
    MAX_WINDOW_DAYS,
    DateWindow,
    naive_utc,
    parse_days,
    today_window,
    trailing_window,
)


def test_trailing_window_spans_from_midnight_days_ago_to_end_of_today() -> None:
    window = trailing_window(
        now=datetime(2026, 2, 16, 15, 30, tzinfo=UTC),
        days=7,
        timezone_name="UTC",
    )

    assert window.start == datetime(2026, 2, 9, 0, 0, tzinfo=UTC)
    assert window.end == datetime(2026, 2, 16, 23, 59, 59, 999999, tzinfo=UTC)
    assert window.days == 7
    assert window.start <= window.end


def test_window_bounds_follow_dashboard_timezone() -> None:
    bogota = ZoneInfo("America/Bogota")

    window = today_window(
        now=datetime(2026, 2, 16, 3, 0, tzinfo=UTC),
        timezone_name="America/Bogota",
    )

    assert window.start == datetime(2026, 2, 15, 0, 0, tzinfo=bogota)
    assert window.end == datetime(2026, 2, 15, 23, 59, 59, 999999, tzinfo=bogota)
    assert window.days == 0


def test_window_contains_is_inclusive_on_both_bounds() -> None:
    window = today_window(now=datetime(2026, 2, 16, 12, 0, tzinfo=UTC), timezone_name="UTC")

    assert window.contains(window.start)
    assert window.contains(window.end)
    assert not window.contains(datetime(2026, 2, 17, 0, 0, tzinfo=UTC))


def test_epoch_seconds_floor_the_window_bounds() -> None:
    window = today_window(now=datetime(2026, 2, 16, 12, 0, tzinfo=UTC), timezone_name="UTC")

    assert window.start_epoch_seconds == int(datetime(2026, 2, 16, tzinfo=UTC).timestamp())
    assert window.end_epoch_seconds == int(
        datetime(2026, 2, 16, 23, 59, 59, tzinfo=UTC).timestamp()
    )


def test_inverted_window_is_rejected() -> None:
    with pytest.raises(ValueError):
        DateWindow(
            start=datetime(2026, 2, 17, tzinfo=UTC),
            end=datetime(2026, 2, 16, tzinfo=UTC),
            days=1,
        )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, 7),
        ("", 7),
        ("abc", 7),
        ("-3", 7),
        ("1.5", 7),
        ("0", 0),
        ("14", 14),
        (" 5 ", 5),
        ("99999", MAX_WINDOW_DAYS),
    ],
)
def test_parse_days_falls_back_instead_of_rejecting(raw: str | None, expected: int) -> None:
    assert parse_days(raw, default=7) == expected


def test_naive_utc_converts_local_time_and_drops_offset() -> None:
    local = datetime(2026, 2, 16, 0, 0, tzinfo=ZoneInfo("America/Bogota"))

    converted = naive_utc(local)

    assert converted == datetime(2026, 2, 16, 5, 0)
    assert converted.tzinfo is None
