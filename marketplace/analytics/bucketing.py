"""
Temporal Bucketing Module

Partitions timestamped records into consecutive time buckets.
Supports:
- hour / day / week / month / quarter granularity
- Calendar alignment (ISO weeks, calendar months and quarters)
- Half-open membership: a record belongs to the bucket with start <= t < end
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from operator import attrgetter
from typing import Any, Callable, Dict, Iterable, List, Mapping, Tuple, Union

import structlog

from marketplace.exceptions import InvalidReportRequest

logger = structlog.get_logger(__name__)

Timestamp = Union[str, Callable[[Any], datetime]]


class Granularity(str, Enum):
    """Bucket sizes"""
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"

    @classmethod
    def parse(cls, value: Union[str, "Granularity"], parameter: str = "granularity") -> "Granularity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidReportRequest.unknown_keyword(parameter, value, [g.value for g in cls]) from None


FIXED_WIDTHS = {
    Granularity.HOUR: timedelta(hours=1),
    Granularity.DAY: timedelta(days=1),
    Granularity.WEEK: timedelta(weeks=1),
}

MONTH_STEPS = {
    Granularity.MONTH: 1,
    Granularity.QUARTER: 3,
}


@dataclass
class Bucket:
    """A [start, end) interval with its records and computed aggregates"""
    start: datetime
    end: datetime
    label: str
    records: List[Any] = field(default_factory=list)
    aggregates: Dict[str, float] = field(default_factory=dict)

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            **self.aggregates,
        }


def read_field(record: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an object, unwrapping enum values."""
    if isinstance(record, Mapping):
        value = record.get(name)
    else:
        value = getattr(record, name, None)
    if isinstance(value, Enum):
        return value.value
    return value


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    days_in_month = (
        (datetime(year + (month == 12), month % 12 + 1, 1) - datetime(year, month, 1)).days
    )
    return value.replace(year=year, month=month, day=min(value.day, days_in_month))


def shift(value: datetime, granularity: Union[str, Granularity], steps: int) -> datetime:
    """Move a timestamp by whole buckets (negative steps move back)."""
    granularity = Granularity.parse(granularity)
    if granularity in FIXED_WIDTHS:
        return value + FIXED_WIDTHS[granularity] * steps
    return add_months(value, MONTH_STEPS[granularity] * steps)


def align(value: datetime, granularity: Union[str, Granularity]) -> datetime:
    """Floor a timestamp to the calendar start of its bucket."""
    granularity = Granularity.parse(granularity)
    if granularity == Granularity.HOUR:
        return value.replace(minute=0, second=0, microsecond=0)

    midnight = value.replace(hour=0, minute=0, second=0, microsecond=0)
    if granularity == Granularity.DAY:
        return midnight
    if granularity == Granularity.WEEK:
        return midnight - timedelta(days=midnight.weekday())
    if granularity == Granularity.MONTH:
        return midnight.replace(day=1)

    quarter_month = 3 * ((value.month - 1) // 3) + 1
    return midnight.replace(month=quarter_month, day=1)


def label_for(value: datetime, granularity: Granularity) -> str:
    """Human label of the bucket starting at ``value``."""
    if granularity == Granularity.HOUR:
        return value.strftime("%Y-%m-%d %H:00")
    if granularity == Granularity.DAY:
        return value.strftime("%Y-%m-%d")
    if granularity == Granularity.WEEK:
        iso_year, iso_week, _ = value.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if granularity == Granularity.MONTH:
        return value.strftime("%Y-%m")
    return f"{value.year}-Q{(value.month - 1) // 3 + 1}"


def bucket_boundaries(
    start: datetime,
    end: datetime,
    granularity: Union[str, Granularity],
    calendar_aligned: bool = True,
) -> List[Tuple[datetime, datetime, str]]:
    """
    Lay out the intervals covering [start, end).

    Args:
        start: Inclusive range start
        end: Exclusive range end
        granularity: Bucket size
        calendar_aligned: Snap boundaries to calendar units instead of ``start``

    Returns:
        List of (bucket_start, bucket_end, label); empty when start >= end
    """
    granularity = Granularity.parse(granularity)
    if start >= end:
        return []

    origin = align(start, granularity) if calendar_aligned else start
    boundaries = []
    step = 0
    cursor = origin
    while cursor < end:
        step += 1
        # step from the origin each time so month-end days do not drift
        following = shift(origin, granularity, step)

        # labels follow the unclipped calendar bucket
        boundaries.append((max(cursor, start), min(following, end), label_for(cursor, granularity)))
        cursor = following

    return boundaries


def bucketize(
    records: Iterable[Any],
    start: datetime,
    end: datetime,
    granularity: Union[str, Granularity],
    timestamp: Timestamp = attrgetter("created_at"),
    calendar_aligned: bool = True,
) -> List[Bucket]:
    """
    Assign records to consecutive time buckets.

    Args:
        records: Timestamped records (objects or mappings)
        start: Inclusive range start
        end: Exclusive range end
        granularity: Bucket size
        timestamp: Field name or callable returning a record's timestamp
        calendar_aligned: Snap boundaries to calendar units

    Returns:
        Ordered buckets covering [start, end); records outside are dropped
    """
    if isinstance(timestamp, str):
        field_name = timestamp
        timestamp = lambda record: read_field(record, field_name)  # noqa: E731

    buckets = [
        Bucket(start=b_start, end=b_end, label=label)
        for b_start, b_end, label in bucket_boundaries(start, end, granularity, calendar_aligned)
    ]
    if not buckets:
        return buckets

    starts = [bucket.start for bucket in buckets]
    dropped = 0
    for record in records:
        ts = timestamp(record)
        if ts is None or not (start <= ts < end):
            dropped += 1
            continue
        buckets[bisect_right(starts, ts) - 1].records.append(record)

    logger.debug(
        "Records bucketed",
        granularity=Granularity.parse(granularity).value,
        buckets=len(buckets),
        dropped=dropped,
    )
    return buckets
