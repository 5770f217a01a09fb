from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import (
    Callable,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

from scorecard.weeks import week_start

T = TypeVar("T")

WeekCounts = Mapping[date, int]


@dataclass(frozen=True)
class Series:
    """
    One weekly count series, e.g. one job's applicants.

    `group` is the display grouping (department, label family, ...); it never
    changes what the counts mean.
    """
    group: str
    label: str
    counts: Mapping[date, int] = field(default_factory=dict)


def bucket_by_week(timestamps: Iterable[datetime]) -> Dict[date, int]:
    """Count timestamps per week key."""
    return dict(Counter(week_start(ts) for ts in timestamps))


def count_by_week(
    records: Iterable[T],
    key: Callable[[T], Hashable],
    timestamp: Callable[[T], datetime],
) -> Dict[Hashable, Dict[date, int]]:
    """Per-key weekly counts: {key(record): {week_key: count}}."""
    counters: Dict[Hashable, Counter] = {}
    for rec in records:
        counters.setdefault(key(rec), Counter())[week_start(timestamp(rec))] += 1
    return {k: dict(c) for k, c in counters.items()}


def sum_counts(mappings: Iterable[WeekCounts]) -> Dict[date, int]:
    """Elementwise sum over every week key present in any mapping."""
    total: Counter = Counter()
    for m in mappings:
        for week, count in m.items():
            total[week] += count
    return dict(total)


def group_series(series: Iterable[Series]) -> List[Tuple[str, List[Series]]]:
    """Series grouped by `group`, groups and labels sorted ascending (case-sensitive)."""
    groups: Dict[str, List[Series]] = {}
    for s in series:
        groups.setdefault(s.group, []).append(s)
    return [(g, sorted(groups[g], key=lambda s: s.label)) for g in sorted(groups)]


def unique_by_week(
    records: Iterable[T],
    who: Callable[[T], str],
    when: Callable[[T], Optional[datetime]],
    weeks: Sequence[date],
) -> Dict[date, FrozenSet[str]]:
    """
    Distinct identities seen per week, for exactly `weeks`.

    Records with an empty identity, no timestamp, or a timestamp outside
    `weeks` are ignored.
    """
    seen: Dict[date, Set[str]] = {w: set() for w in weeks}
    for rec in records:
        ident = who(rec)
        ts = when(rec)
        if not ident or ts is None:
            continue
        bucket = seen.get(week_start(ts))
        if bucket is not None:
            bucket.add(ident)
    return {w: frozenset(ids) for w, ids in seen.items()}
