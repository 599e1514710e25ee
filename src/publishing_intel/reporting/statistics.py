"""Descriptive statistics for report rows.

Pure functions. Only positive values take part, since zero/blank cells in
these reports mean "no data" rather than a measured zero.
"""

from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import Any, Iterable


@dataclass
class Description:
    count: int
    total: float
    mean: float
    median: float
    min_val: float
    max_val: float
    std_dev: float
    q1: float
    q3: float


def _number(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(result) else result


def describe(values: Iterable[Any]) -> Description | None:
    """Summarise the positive values, or None when there are none."""
    data = sorted(v for v in (_number(x) for x in values) if v > 0)
    if not data:
        return None
    n = len(data)
    return Description(
        count=n,
        total=sum(data),
        mean=statistics.fmean(data),
        median=statistics.median(data),
        min_val=data[0],
        max_val=data[-1],
        std_dev=statistics.pstdev(data),
        q1=data[int(n * 0.25)],
        q3=data[int(n * 0.75)],
    )


def describe_field(rows: list[dict], field: str) -> Description | None:
    return describe(row.get(field) for row in rows)


def correlation(pairs: Iterable[tuple[Any, Any]]) -> float | None:
    """Pearson correlation over pairs where both sides are positive.

    Returns None with fewer than two usable pairs or zero variance.
    """
    usable = [(x, y) for x, y in ((_number(a), _number(b)) for a, b in pairs) if x > 0 and y > 0]
    n = len(usable)
    if n < 2:
        return None
    sum_x = sum(x for x, _ in usable)
    sum_y = sum(y for _, y in usable)
    sum_xy = sum(x * y for x, y in usable)
    sum_x2 = sum(x * x for x, _ in usable)
    sum_y2 = sum(y * y for _, y in usable)
    spread = (n * sum_x2 - sum_x**2) * (n * sum_y2 - sum_y**2)
    if spread <= 0:
        return None
    return (n * sum_xy - sum_x * sum_y) / math.sqrt(spread)


def field_correlation(rows: list[dict], field_x: str, field_y: str) -> float | None:
    return correlation((row.get(field_x), row.get(field_y)) for row in rows)
