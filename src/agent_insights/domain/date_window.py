"""Date windows that scope every dashboard query."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

MAX_WINDOW_DAYS = 3650


@dataclass(frozen=True)
class DateWindow:
    """Inclusive `[start, end]` range plus the caller-supplied day count.

    `days` is only echoed back for labelling; the bounds are derived from the
    clock when the window is built.
    """

    start: datetime
    end: datetime
    days: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("window start must not be after window end")

    def contains(self, moment: datetime) -> bool:
        """Return whether `moment` falls inside the inclusive window."""

        return self.start <= moment <= self.end

    @property
    def start_epoch_seconds(self) -> int:
        return int(self.start.timestamp())

    @property
    def end_epoch_seconds(self) -> int:
        return int(self.end.timestamp())


def naive_utc(moment: datetime) -> datetime:
    """Return `moment` as a naive UTC datetime for `timestamp without time zone` columns."""

    return moment.astimezone(UTC).replace(tzinfo=None)


def start_of_day(moment: datetime) -> datetime:
    """Return local midnight of the day containing `moment`."""

    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def end_of_day(moment: datetime) -> datetime:
    """Return the last representable instant of the day containing `moment`."""

    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def trailing_window(*, now: datetime, days: int, timezone_name: str) -> DateWindow:
    """Build the window from midnight `days` days ago through the end of today."""

    local_now = now.astimezone(ZoneInfo(timezone_name))
    return DateWindow(
        start=start_of_day(local_now - timedelta(days=days)),
        end=end_of_day(local_now),
        days=days,
    )


def today_window(*, now: datetime, timezone_name: str) -> DateWindow:
    """Build the window covering the current local calendar day."""

    return trailing_window(now=now, days=0, timezone_name=timezone_name)


def parse_days(raw: str | None, *, default: int) -> int:
    """Parse a `days` query value, falling back to `default` instead of rejecting.

    Missing, non-integer and negative values use `default`; large values are
    clamped to `MAX_WINDOW_DAYS`.
    """

    if raw is None:
        return default
    try:
        days = int(raw.strip())
    except ValueError:
        return default
    if days < 0:
        return default
    return min(days, MAX_WINDOW_DAYS)
