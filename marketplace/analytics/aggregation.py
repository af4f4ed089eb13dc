"""
Aggregation Module

Folds bucketed records into per-bucket numeric summaries described by
declarative reducers:

    count                    -> count
    sum(total)               -> sum_total
    average(total)           -> average_total
    uniqueCount(user_id)     -> unique_count_user_id
    sum(total) as revenue    -> revenue

Reductions run as a single polars group-by over all buckets.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import polars as pl
import structlog

from marketplace.analytics.bucketing import Bucket, read_field
from marketplace.exceptions import InvalidReportRequest

logger = structlog.get_logger(__name__)

RESERVED_PREFIX = "__"
BUCKET_COLUMN = "__bucket"

REDUCER_PATTERN = re.compile(
    r"^\s*(?P<kind>[A-Za-z_]+)\s*(?:\(\s*(?P<field>[A-Za-z_][A-Za-z0-9_]*)?\s*\))?"
    r"(?:\s+as\s+(?P<name>[A-Za-z_][A-Za-z0-9_]*))?\s*$"
)


class ReducerKind(str, Enum):
    """Supported reductions"""
    COUNT = "count"
    SUM = "sum"
    AVERAGE = "average"
    UNIQUE_COUNT = "uniqueCount"


KIND_ALIASES = {
    "count": ReducerKind.COUNT,
    "sum": ReducerKind.SUM,
    "average": ReducerKind.AVERAGE,
    "avg": ReducerKind.AVERAGE,
    "uniquecount": ReducerKind.UNIQUE_COUNT,
    "unique_count": ReducerKind.UNIQUE_COUNT,
}


@dataclass(frozen=True)
class Reducer:
    """One named reduction over a record field"""
    kind: ReducerKind
    field: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        if self.kind != ReducerKind.COUNT and not self.field:
            raise InvalidReportRequest(f"Reducer '{self.kind.value}' requires a field", parameter="reducer")
        if self.name is None:
            object.__setattr__(self, "name", self.default_name())

    def default_name(self) -> str:
        if self.kind == ReducerKind.COUNT:
            return "count"
        if self.kind == ReducerKind.UNIQUE_COUNT:
            return f"unique_count_{self.field}"
        return f"{self.kind.value}_{self.field}"

    @classmethod
    def parse(cls, spec: Union[str, "Reducer"]) -> "Reducer":
        """Parse the declarative form, e.g. ``"average(total) as aov"``."""
        if isinstance(spec, Reducer):
            return spec

        match = REDUCER_PATTERN.match(str(spec))
        if match is None:
            raise InvalidReportRequest(f"Malformed reducer '{spec}'", parameter="reducer")

        kind = KIND_ALIASES.get(match.group("kind").lower())
        if kind is None:
            raise InvalidReportRequest.unknown_keyword(
                "reducer", match.group("kind"), [k.value for k in ReducerKind]
            )
        return cls(kind=kind, field=match.group("field"), name=match.group("name"))


class Aggregator:
    """
    Computes one value per reducer per bucket.

    Empty buckets yield 0 for every reducer; ``average`` over zero records
    is exactly 0.

    Example:
        aggregator = Aggregator(["count", "sum(total)", "uniqueCount(user_id)"])
        buckets = aggregator.aggregate(bucketize(orders, start, end, "day"))
    """

    def __init__(self, reducers: Sequence[Union[str, Reducer]]):
        self.reducers = [Reducer.parse(r) for r in reducers]
        if not self.reducers:
            raise InvalidReportRequest("At least one reducer is required", parameter="reducer")

        names = [r.name for r in self.reducers]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidReportRequest(f"Duplicate reducer names: {duplicates}", parameter="reducer")

        # leading double underscores are kept for internal frame columns
        reserved = sorted(n for n in names if n.startswith(RESERVED_PREFIX))
        if reserved:
            raise InvalidReportRequest(f"Reserved reducer names: {reserved}", parameter="reducer")

    @staticmethod
    def _column(index: int) -> str:
        return f"__r{index}"

    def _frame(self, groups: Sequence[Sequence[Any]]) -> pl.DataFrame:
        """Flatten grouped records into one typed frame keyed by group index."""
        data: Dict[str, List[Any]] = {BUCKET_COLUMN: []}
        schema: Dict[str, Any] = {BUCKET_COLUMN: pl.Int64}

        for i, reducer in enumerate(self.reducers):
            if reducer.kind == ReducerKind.COUNT:
                continue
            data[self._column(i)] = []
            schema[self._column(i)] = pl.Utf8 if reducer.kind == ReducerKind.UNIQUE_COUNT else pl.Float64

        for group_index, records in enumerate(groups):
            for record in records:
                data[BUCKET_COLUMN].append(group_index)
                for i, reducer in enumerate(self.reducers):
                    if reducer.kind == ReducerKind.COUNT:
                        continue
                    value = read_field(record, reducer.field)
                    if value is not None:
                        value = str(value) if reducer.kind == ReducerKind.UNIQUE_COUNT else float(value)
                    data[self._column(i)].append(value)

        return pl.DataFrame(data, schema=schema)

    def _expressions(self) -> List[pl.Expr]:
        expressions = []
        for i, reducer in enumerate(self.reducers):
            column = pl.col(self._column(i))
            if reducer.kind == ReducerKind.COUNT:
                expr = pl.len()
            elif reducer.kind == ReducerKind.SUM:
                expr = column.sum()
            elif reducer.kind == ReducerKind.AVERAGE:
                expr = column.mean()
            else:
                expr = column.drop_nulls().n_unique()
            expressions.append(expr.alias(reducer.name))
        return expressions

    def _zero(self) -> Dict[str, float]:
        return {
            r.name: 0 if r.kind in (ReducerKind.COUNT, ReducerKind.UNIQUE_COUNT) else 0.0
            for r in self.reducers
        }

    def _reduce(self, groups: Sequence[Sequence[Any]]) -> List[Dict[str, float]]:
        if not any(groups):
            return [self._zero() for _ in groups]

        grouped = self._frame(groups).group_by(BUCKET_COLUMN).agg(self._expressions())
        every_group = pl.DataFrame({BUCKET_COLUMN: list(range(len(groups)))}, schema={BUCKET_COLUMN: pl.Int64})
        result = (
            every_group
            .join(grouped, on=BUCKET_COLUMN, how="left")
            .fill_null(0)
            .sort(BUCKET_COLUMN)
        )

        rows = []
        for row in result.iter_rows(named=True):
            values = {}
            for reducer in self.reducers:
                value = row[reducer.name]
                if reducer.kind in (ReducerKind.COUNT, ReducerKind.UNIQUE_COUNT):
                    values[reducer.name] = int(value)
                else:
                    values[reducer.name] = float(value)
            rows.append(values)
        return rows

    def aggregate(self, buckets: Sequence[Bucket]) -> List[Bucket]:
        """
        Attach reducer results to each bucket.

        Args:
            buckets: Buckets produced by ``bucketize``

        Returns:
            New buckets (same order) with ``aggregates`` filled in
        """
        results = self._reduce([bucket.records for bucket in buckets])
        logger.debug("Buckets aggregated", buckets=len(buckets), reducers=[r.name for r in self.reducers])
        return [
            replace(bucket, aggregates={**bucket.aggregates, **values})
            for bucket, values in zip(buckets, results)
        ]

    def aggregate_totals(self, records: Iterable[Any]) -> Dict[str, float]:
        """Apply the reducers to an unbucketed record set."""
        return self._reduce([list(records)])[0]
