"""
Report Request Parsing

Keywords and date ranges accepted by the report assembler. Missing
parameters fall back to defaults; malformed or unknown ones raise
``InvalidReportRequest``.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Type, TypeVar, Union

from marketplace.analytics.bucketing import Granularity, add_months
from marketplace.data.entities import to_naive_utc
from marketplace.exceptions import InvalidReportRequest

EnumT = TypeVar("EnumT", bound=Enum)


class ReportPeriod(str, Enum):
    """Dashboard period keywords"""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class ReportType(str, Enum):
    """Exportable report types"""
    DASHBOARD = "dashboard"
    PRODUCTS = "products"
    ORDERS = "orders"
    CUSTOMERS = "customers"


class ExportFormat(str, Enum):
    """Export renderings"""
    JSON = "json"
    CSV = "csv"


TREND_GRANULARITY = {
    ReportPeriod.TODAY: Granularity.HOUR,
    ReportPeriod.WEEK: Granularity.DAY,
    ReportPeriod.MONTH: Granularity.DAY,
    ReportPeriod.QUARTER: Granularity.WEEK,
    ReportPeriod.YEAR: Granularity.MONTH,
}


def parse_keyword(enum_cls: Type[EnumT], value: Union[str, EnumT], parameter: str) -> EnumT:
    """Resolve a request keyword against a closed set."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise InvalidReportRequest.unknown_keyword(parameter, value, [m.value for m in enum_cls]) from None


@dataclass(frozen=True)
class DateRange:
    """Half-open [start, end) reporting window"""
    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    @property
    def duration(self) -> timedelta:
        return max(self.end - self.start, timedelta(0))

    def contains(self, ts: Optional[datetime]) -> bool:
        return ts is not None and self.start <= ts < self.end

    def previous(self) -> "DateRange":
        """Window of equal length ending where this one starts."""
        return DateRange(start=self.start - self.duration, end=self.start)


def is_bare_date(text: str) -> bool:
    """True when ``text`` is an ISO date without a time part."""
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def parse_date(
    value: Union[None, str, date, datetime],
    parameter: str,
    end_of_range: bool = False,
) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime.

    Args:
        value: Raw request value
        parameter: Parameter name reported on failure
        end_of_range: A bare date then means the whole day, so the
            following midnight is returned

    Returns:
        Naive UTC datetime, or None when ``value`` is missing
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    if isinstance(value, datetime):
        return to_naive_utc(value)

    if isinstance(value, date):
        parsed, bare_date = datetime(value.year, value.month, value.day), True
    else:
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            raise InvalidReportRequest(
                f"Invalid {parameter} '{value}'. Expected an ISO-8601 date or datetime",
                parameter=parameter,
            ) from None
        parsed = to_naive_utc(parsed)
        bare_date = is_bare_date(text)

    if bare_date and end_of_range:
        return parsed + timedelta(days=1)
    return parsed


def period_range(period: ReportPeriod, now: datetime) -> DateRange:
    """Window ending at ``now`` for a period keyword."""
    if period == ReportPeriod.TODAY:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif period == ReportPeriod.WEEK:
        start = now - timedelta(days=7)
    elif period == ReportPeriod.MONTH:
        start = add_months(now, -1)
    elif period == ReportPeriod.QUARTER:
        start = add_months(now, -3)
    else:
        start = add_months(now, -12)
    return DateRange(start=start, end=now)


def resolve_range(
    now: datetime,
    period: Optional[Union[str, ReportPeriod]],
    start_date=None,
    end_date=None,
    default_period: str = ReportPeriod.MONTH.value,
) -> DateRange:
    """
    Combine a period keyword with optional explicit bounds.

    Explicit ``start_date`` / ``end_date`` override the matching side of
    the period window.
    """
    keyword = parse_keyword(ReportPeriod, period or default_period, "period")
    window = period_range(keyword, now)

    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date", end_of_range=True)
    return DateRange(start=start or window.start, end=end or window.end)


def granularity_for_span(window: DateRange) -> Granularity:
    """Trend bucket size suited to an explicit range."""
    days = window.duration.total_seconds() / 86400
    if days <= 2:
        return Granularity.HOUR
    if days <= 62:
        return Granularity.DAY
    if days <= 183:
        return Granularity.WEEK
    return Granularity.MONTH
