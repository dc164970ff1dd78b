"""
Date and timezone normalization for churn reporting.

Turns explicit dates or raw request parameters into a ChurnPeriod of
merchant-local calendar days, and maps calendar days to the UTC
instants stored on subscription rows.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, List, Mapping, Optional, Sequence, Union

import pytz
from dateutil import parser
from dateutil.relativedelta import relativedelta

from churn_analytics.core.exceptions import InvalidDateFormatError, InvalidDateRangeError

# Parameter keys in priority order
START_DATE_PARAM_KEYS = ("start_time", "from")
END_DATE_PARAM_KEYS = ("end_time", "to")

DateInput = Union[date, datetime, str]


def to_timezone(tz: Union[str, pytz.BaseTzInfo, None]) -> pytz.BaseTzInfo:
    if tz is None:
        return pytz.utc
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def start_of_day(day: date, tz: Union[str, pytz.BaseTzInfo]) -> datetime:
    """First instant of a merchant-local day, as naive UTC."""
    local_midnight = to_timezone(tz).localize(datetime.combine(day, time.min))
    return local_midnight.astimezone(pytz.utc).replace(tzinfo=None)


def end_of_day(day: date, tz: Union[str, pytz.BaseTzInfo]) -> datetime:
    """Last instant of a merchant-local day, as naive UTC."""
    return start_of_day(day + timedelta(days=1), tz) - timedelta(microseconds=1)


def local_date(instant: datetime, tz: Union[str, pytz.BaseTzInfo]) -> date:
    """Merchant calendar day containing a stored instant (naive UTC or aware)."""
    if instant.tzinfo is None:
        instant = pytz.utc.localize(instant)
    return instant.astimezone(to_timezone(tz)).date()


def today_in(tz: Union[str, pytz.BaseTzInfo], now: Optional[datetime] = None) -> date:
    return local_date(now or datetime.utcnow(), tz)


def parse_date_value(value: Optional[DateInput], field: str) -> Optional[date]:
    """
    Coerce a date-like value to a calendar date.

    Blank strings count as absent. Strings that cannot be parsed raise
    InvalidDateFormatError; range checks happen elsewhere.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return parser.parse(value).date()
        except (parser.ParserError, ValueError, OverflowError) as e:
            raise InvalidDateFormatError(
                f"Invalid date format: {e}",
                value=value,
                field=field,
            ) from e
    raise InvalidDateFormatError(
        f"Invalid date format: unsupported type {type(value).__name__}",
        value=str(value),
        field=field,
    )


def _first_param(params: Mapping[str, Any], keys: Sequence[str]) -> Optional[Any]:
    for key in keys:
        value = params.get(key)
        if value is not None and value != "":
            return value
    return None


@dataclass(frozen=True)
class ChurnPeriod:
    """Inclusive range of merchant-local calendar days."""

    start_date: date
    end_date: date

    def time_window(self) -> int:
        """Inclusive number of days in the period."""
        return (self.end_date - self.start_date).days + 1

    def previous_period(self) -> "ChurnPeriod":
        """Period of equal length ending the day before start_date."""
        previous_end = self.start_date - timedelta(days=1)
        previous_start = previous_end - timedelta(days=self.time_window() - 1)
        return ChurnPeriod(start_date=previous_start, end_date=previous_end)

    def is_valid(self) -> bool:
        return self.end_date >= self.start_date

    def validate(self) -> "ChurnPeriod":
        if not self.is_valid():
            raise InvalidDateRangeError(
                "End date must be greater than or equal to start date",
                start_date=self.start_date.isoformat(),
                end_date=self.end_date.isoformat(),
            )
        return self

    def days(self) -> List[date]:
        return [self.start_date + timedelta(days=offset) for offset in range(max(self.time_window(), 0))]

    def month_index(self, day: date) -> int:
        """Months elapsed between the start month and the month of day."""
        return (day.year - self.start_date.year) * 12 + (day.month - self.start_date.month)


def resolve_period(
    tz: Union[str, pytz.BaseTzInfo],
    start_date: Optional[DateInput] = None,
    end_date: Optional[DateInput] = None,
    params: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
    default_range_months: int = 1,
) -> ChurnPeriod:
    """
    Build the reporting period from explicit dates or request params.

    Explicit arguments win over params; within params `start_time` wins
    over `from` and `end_time` over `to`. Without an end date the
    period ends today in the merchant timezone, and without a start
    date it starts one calendar month before the end date. The result
    is not range-checked.
    """
    params = params or {}

    end = parse_date_value(end_date, "end_date")
    if end is None:
        end = parse_date_value(_first_param(params, END_DATE_PARAM_KEYS), "end_date")
    if end is None:
        end = today_in(tz, now)

    start = parse_date_value(start_date, "start_date")
    if start is None:
        start = parse_date_value(_first_param(params, START_DATE_PARAM_KEYS), "start_date")
    if start is None:
        start = end - relativedelta(months=default_range_months)

    return ChurnPeriod(start_date=start, end_date=end)
