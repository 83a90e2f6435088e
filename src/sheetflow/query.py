"""
In-memory query and aggregation over records fetched from a table.

A find runs filter -> sort -> paginate (-> project) and an aggregate runs
group -> aggregate -> having.  Those orders are fixed.

Predicates are flat conjunctions, every field in a where map has to match:

    {"country": "USA", "age": {"$gte": 18, "$lt": 65}}

A plain value is an equality test, a map whose keys are all operators is
evaluated operator by operator and every one of them has to hold.
"""
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Self
import operator

from .errors import SheetFlowQueryError
from .resources import SheetFlowResourceBase
from .store import ROW_KEY

ALL_GROUP = "all"

SORT_DIRECTIONS = {
    "asc": "asc",
    "ascending": "asc",
    "1": "asc",
    "desc": "desc",
    "descending": "desc",
    "-1": "desc"
}

AGGREGATE_OPERATORS = ("$sum", "$avg", "$min", "$max", "$count")

Record = dict[str, Any]


def _align(value: Any, condition: Any) -> Any:
    """
    A date in a record compared with a string condition, parse the condition
    so the comparison is a date comparison and not a type error.
    """
    if isinstance(value, (datetime, date)) and isinstance(condition, str):
        try:
            parsed = datetime.fromisoformat(condition.strip())
        except ValueError:
            return condition
        if isinstance(value, datetime):
            return parsed
        return parsed.date()
    return condition


def _ordered(op):
    """
    Ordering operators are false for a missing value or for values that
    don't order against each other (e.g. str vs int).
    """
    def compare(value: Any, condition: Any) -> bool:
        if value is None or condition is None:
            return False
        try:
            return bool(op(value, _align(value, condition)))
        except TypeError:
            return False
    return compare


def _membership(value: Any, condition: Any) -> bool:
    if isinstance(condition, (str, bytes)) or not isinstance(condition, Iterable):
        raise SheetFlowQueryError(f"$in/$nin needs a list of values, got: {condition!r}")
    return any(value == _align(value, c) for c in condition)


_OPERATORS = {
    "$eq": lambda v, c: v == _align(v, c),
    "$ne": lambda v, c: v != _align(v, c),
    "$gt": _ordered(operator.gt),
    "$gte": _ordered(operator.ge),
    "$lt": _ordered(operator.lt),
    "$lte": _ordered(operator.le),
    "$in": _membership,
    "$nin": lambda v, c: not _membership(v, c)
}


def is_operator_map(condition: Any) -> bool:
    # an empty map has no operators to fail, so it matches any value
    return isinstance(condition, Mapping) and all(str(k).startswith("$") for k in condition)


def matches(record: Mapping[str, Any], where: Mapping[str, Any]|None) -> bool:
    """
    Does the record satisfy every condition in where?
    An empty or missing where matches everything.
    """
    for name, condition in dict(where or {}).items():
        value = record.get(name)
        if is_operator_map(condition):
            for op, arg in condition.items():
                fn = _OPERATORS.get(op)
                if fn is None:
                    raise SheetFlowQueryError(f"Unknown query operator: {op}")
                if not fn(value, arg):
                    return False
        elif value != _align(value, condition):
            return False
    return True


def matches_exact(record: Mapping[str, Any], where: Mapping[str, Any]|None) -> bool:
    """
    Equality only match, as used by update and delete.
    Operator maps are compared as literal values and so never match a cell.
    """
    return all(record.get(k) == v for k,v in dict(where or {}).items())


def filter_records(records: Iterable[Record], where: Mapping[str, Any]|None) -> list[Record]:
    if not where:
        return list(records)
    return [r for r in records if matches(r, where)]


def sort_records(records: Iterable[Record], field: str, direction: str = "asc") -> list[Record]:
    """
    Stable single key sort.
    Records without a value for field go last whichever the direction.
    """
    d = SORT_DIRECTIONS.get(str(direction).lower())
    if d is None:
        raise SheetFlowQueryError(f"Invalid sort direction: {direction}")
    present = []
    missing = []
    for r in records:
        (missing if r.get(field) is None else present).append(r)
    try:
        # reverse=True keeps equal keys in input order so this stays stable
        ordered = sorted(present, key=lambda r: r[field], reverse=(d == "desc"))
    except TypeError as e:
        raise SheetFlowQueryError(f"Cannot sort on '{field}', values are not comparable") from e
    return ordered + missing


def paginate(records: Sequence[Record], offset: int|None = 0, limit: int|None = None) -> list[Record]:
    """
    Records in [offset, offset+limit), clipped to what is there.
    No limit means no truncation.
    """
    start = int(offset or 0)
    if start < 0:
        raise SheetFlowQueryError(f"offset must be >= 0: {offset}")
    if limit is None:
        return list(records[start:])
    if int(limit) < 0:
        raise SheetFlowQueryError(f"limit must be >= 0: {limit}")
    return list(records[start:start + int(limit)])


def project(records: Iterable[Record], fields: Sequence[str]|None) -> list[Record]:
    """
    Keep only the selected fields.  Row identity always survives so a
    projected record can still be updated.
    """
    if not fields:
        return list(records)
    keep = list(fields)
    if ROW_KEY not in keep:
        keep.append(ROW_KEY)
    return [{k: r[k] for k in keep if k in r} for r in records]


def group_field(group_by: str|None) -> str|None:
    """
    Field a group_by refers to or None for the single all records group.
    Accepts 'country' or '$country', and 'all' or '$all'.
    """
    g = str(group_by or ALL_GROUP)
    g = g[1:] if g.startswith("$") else g
    if not g:
        raise SheetFlowQueryError(f"Invalid group_by: {group_by!r}")
    return None if g == ALL_GROUP else g


def group(records: Iterable[Record], group_by: str|None) -> dict[Any, list[Record]]:
    """
    Partition records by group key.  Groups come out in order of first
    occurrence of their key.
    """
    name = group_field(group_by)
    if name is None:
        return {ALL_GROUP: list(records)}
    groups: dict[Any, list[Record]] = {}
    for r in records:
        key = r.get(name)
        try:
            groups.setdefault(key, []).append(r)
        except TypeError as e:
            raise SheetFlowQueryError(f"Cannot group on '{name}', value is not hashable: {key!r}") from e
    return groups


def to_number(value: Any) -> int|float|None:
    """
    Numeric coercion for aggregation.
    None and blank strings give None, anything else that isn't a number
    is an error rather than a silent NaN.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return int(s)
        except ValueError:
            pass
        try:
            return float(s)
        except ValueError:
            pass
    raise SheetFlowQueryError(f"Cannot aggregate non numeric value: {value!r}")


def _reduce(op: str, source: str|None, rows: list[Record]) -> int|float|None:
    if op == "$count":
        return len(rows)
    values = [to_number(r.get(source)) for r in rows]
    numbers = [v for v in values if v is not None]
    if op == "$sum":
        return sum(numbers)
    if op == "$avg":
        if not rows:
            raise SheetFlowQueryError(f"$avg of '{source}' over an empty group")
        return sum(numbers) / len(rows)
    if op == "$min":
        return min(numbers) if numbers else None
    if op == "$max":
        return max(numbers) if numbers else None
    raise SheetFlowQueryError(f"Unknown aggregate operator: {op}")


def aggregate(groups: Mapping[Any, list[Record]],
              metrics: Mapping[str, tuple[str, str|None]]) -> list[Record]:
    """
    One output record per group: _id is the group key plus one field per metric.
    """
    results = []
    for key, rows in groups.items():
        result: Record = {"_id": key}
        for out, (op, source) in metrics.items():
            result[out] = _reduce(op, source, rows)
        results.append(result)
    return results


def having(results: Iterable[Record], predicate: Mapping[str, Any]|None) -> list[Record]:
    """Same predicate semantics as a find, applied to aggregate output."""
    return filter_records(results, predicate)


def _parse_sort(sort: Any) -> tuple[str, str]|None:
    if not sort:
        return None
    if isinstance(sort, Mapping):
        if len(sort) != 1:
            raise SheetFlowQueryError(f"Only a single sort field is supported: {dict(sort)}")
        name, direction = next(iter(sort.items()))
    elif isinstance(sort, str):
        name, direction = sort, "asc"
    else:
        try:
            name, direction = sort
        except (TypeError, ValueError) as e:
            raise SheetFlowQueryError(f"Invalid sort: {sort!r}") from e
    d = SORT_DIRECTIONS.get(str(direction).lower())
    if d is None:
        raise SheetFlowQueryError(f"Invalid sort direction: {direction}")
    return (str(name), d)


@dataclass
class Query(SheetFlowResourceBase):
    """
    A find request.  sort is a (field, direction) pair, a {field: direction}
    single entry dict is accepted as well.
    """
    where: dict = field(default_factory=dict)
    sort: tuple[str, str]|None = field(default=None)
    limit: int|None = field(default=None)
    offset: int = field(default=0)
    select: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        self.where = dict(self.where or {})
        self.sort = _parse_sort(self.sort)
        self.offset = int(self.offset or 0)
        if self.offset < 0:
            raise SheetFlowQueryError(f"offset must be >= 0: {self.offset}")
        if self.limit is not None:
            self.limit = int(self.limit)
            if self.limit < 0:
                raise SheetFlowQueryError(f"limit must be >= 0: {self.limit}")
        self.select = [str(s) for s in (self.select or [])]

    @classmethod
    def parse(cls, query: Self|Mapping[str, Any]|None) -> Self:
        if isinstance(query, Query):
            return query
        q = dict(query or {})
        unknown = set(q) - {"where", "sort", "limit", "offset", "select"}
        if unknown:
            raise SheetFlowQueryError(f"Unknown query options: {sorted(unknown)}")
        return cls(**q)


def _parse_metric(name: str, metric: Any) -> tuple[str, str|None]:
    if isinstance(metric, Mapping):
        if len(metric) != 1:
            raise SheetFlowQueryError(f"Metric '{name}' must have exactly one operator")
        op, source = next(iter(metric.items()))
    else:
        try:
            op, source = metric
        except (TypeError, ValueError) as e:
            raise SheetFlowQueryError(f"Invalid metric '{name}': {metric!r}") from e
    if op not in AGGREGATE_OPERATORS:
        raise SheetFlowQueryError(f"Unknown aggregate operator: {op}")
    if op == "$count":
        return (op, None)
    if not isinstance(source, str) or not source.lstrip("$"):
        raise SheetFlowQueryError(f"Metric '{name}' needs a source field")
    return (op, source[1:] if source.startswith("$") else source)


@dataclass
class AggregateSpec(SheetFlowResourceBase):
    """
    group_by is a field reference or 'all', metrics maps an output field to
    an (operator, source field) pair, having filters the output.
    """
    group_by: str = field(default=ALL_GROUP)
    metrics: dict = field(default_factory=dict)
    having: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.fixup()

    def fixup(self) -> None:
        group_field(self.group_by)
        self.metrics = {str(k): _parse_metric(str(k), v) for k,v in dict(self.metrics or {}).items()}
        if "_id" in self.metrics:
            raise SheetFlowQueryError("'_id' is reserved for the group key")
        self.having = dict(self.having or {})

    @classmethod
    def parse(cls, spec: Self|Mapping[str, Any]) -> Self:
        """
        Accepts the dataclass fields or the $group form:
        {"$group": {"_id": "$country", "avgAge": {"$avg": "$age"}}, "having": {...}}
        """
        if isinstance(spec, AggregateSpec):
            return spec
        s = dict(spec or {})
        if "$group" in s:
            g = dict(s["$group"])
            if "_id" not in g:
                raise SheetFlowQueryError("$group needs an _id")
            group_by = g.pop("_id")
            return cls(group_by=group_by, metrics=g, having=s.get("having") or {})
        unknown = set(s) - {"group_by", "metrics", "having"}
        if unknown:
            raise SheetFlowQueryError(f"Unknown aggregate options: {sorted(unknown)}")
        return cls(**s)


def run_find(records: Iterable[Record], query: Query|Mapping[str, Any]|None) -> list[Record]:
    q = Query.parse(query)
    results = filter_records(records, q.where)
    if q.sort:
        results = sort_records(results, *q.sort)
    results = paginate(results, q.offset, q.limit)
    return project(results, q.select)


def run_aggregate(records: Iterable[Record], spec: AggregateSpec|Mapping[str, Any]) -> list[Record]:
    s = AggregateSpec.parse(spec)
    results = aggregate(group(records, s.group_by), s.metrics)
    return having(results, s.having)
