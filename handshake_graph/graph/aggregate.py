"""Depth histograms and day-bucketed growth series.

All day arithmetic uses UTC calendar days, for the per-day buckets and for
the baseline cut-off alike.
"""
from __future__ import annotations

from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Tuple

import pandas as pd

from handshake_graph.graph.models import GrowthPoint, ReachabilityResult


def depth_histogram(result: ReachabilityResult) -> Dict[int, int]:
    """Count of reached users per handshake depth, ascending by depth."""
    counts = Counter(user.depth for user in result.users)
    return {depth: counts[depth] for depth in sorted(counts)}


def window_bounds(days: int, today: date) -> Tuple[date, date]:
    """First and last UTC day of a ``days``-long window ending on ``today``."""
    return today - timedelta(days=days - 1), today


def day_start(day: date) -> datetime:
    """Midnight UTC of ``day`` as a naive datetime (store convention)."""
    return datetime.combine(day, time.min)


def utc_today(now: datetime) -> date:
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.date()


def bucket_by_day(timestamps: Iterable[datetime]) -> Dict[date, int]:
    """Count timestamps per UTC day. Naive timestamps are taken as UTC."""
    stamps = [
        ts.astimezone(timezone.utc).replace(tzinfo=None) if ts.tzinfo is not None else ts
        for ts in timestamps
    ]
    if not stamps:
        return {}
    series = pd.to_datetime(pd.Series(stamps))
    counts = series.dt.floor("D").value_counts()
    return {ts.date(): int(n) for ts, n in sorted(counts.items())}


def growth_series(
    daily_counts: Mapping[date, int],
    baseline: int,
    start: date,
    end: date,
) -> List[GrowthPoint]:
    """Cumulative daily totals from ``start`` to ``end`` inclusive.

    Days without new connections carry the previous total forward. Counts
    dated outside the window are ignored; anything before ``start`` belongs in
    ``baseline``.
    """
    if start > end:
        return []
    index = pd.date_range(start=start, end=end, freq="D")
    counts = pd.Series(
        {pd.Timestamp(day): int(n) for day, n in daily_counts.items()},
        dtype="int64",
    )
    cumulative = counts.reindex(index, fill_value=0).cumsum() + int(baseline)
    return [GrowthPoint(day=ts.date(), cumulative_count=int(total)) for ts, total in cumulative.items()]
