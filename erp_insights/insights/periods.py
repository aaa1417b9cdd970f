"""
Period Resolver

Turns optional start/end dates into concrete half-open ``[start, end)``
windows of naive UTC datetimes, and derives calendar-month windows for
month-over-month comparisons.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from erp_insights.insights.exceptions import InvalidInputError


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime, matching the row store columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min)


@dataclass(frozen=True)
class DateWindow:
    """Half-open ``[start, end)`` window; a ``None`` bound is unbounded."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def days(self) -> Optional[int]:
        """Length in whole days, ``None`` when unbounded"""
        if not self.is_bounded:
            return None
        return (self.end - self.start).days

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True


@dataclass(frozen=True)
class ReportingPeriod:
    """Requested window plus the equal-length window immediately before it"""

    current: DateWindow
    previous: Optional[DateWindow] = None


def resolve_period(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    max_range_days: Optional[int] = None,
) -> ReportingPeriod:
    """
    Resolve the requested date range.

    ``end_date`` is inclusive: the window ends at midnight of the following day.

    Raises:
        InvalidInputError: If end_date precedes start_date or the range is too long
    """
    if start_date is None and end_date is None:
        return ReportingPeriod(current=DateWindow())

    if start_date is not None and end_date is not None:
        if end_date < start_date:
            raise InvalidInputError("endDate must not be before startDate")

        start = _start_of_day(start_date)
        end = _start_of_day(end_date) + timedelta(days=1)
        length = end - start

        if max_range_days is not None and length.days > max_range_days:
            raise InvalidInputError(
                f"Date range exceeds the maximum of {max_range_days} days"
            )

        return ReportingPeriod(
            current=DateWindow(start, end),
            previous=DateWindow(start - length, start),
        )

    # Half-bounded ranges have no comparison period
    if start_date is not None:
        return ReportingPeriod(current=DateWindow(start=_start_of_day(start_date)))
    return ReportingPeriod(
        current=DateWindow(end=_start_of_day(end_date) + timedelta(days=1))
    )


def month_window(reference: datetime) -> DateWindow:
    """Calendar month containing ``reference``"""
    start = datetime(reference.year, reference.month, 1)
    if reference.month == 12:
        end = datetime(reference.year + 1, 1, 1)
    else:
        end = datetime(reference.year, reference.month + 1, 1)
    return DateWindow(start, end)


def previous_month_window(reference: datetime) -> DateWindow:
    """Calendar month immediately before the one containing ``reference``"""
    current = month_window(reference)
    return month_window(current.start - timedelta(days=1))


def trailing_window(reference: datetime, days: int) -> DateWindow:
    """``[reference - days, reference)``"""
    return DateWindow(reference - timedelta(days=days), reference)
