"""Interpret raw spreadsheet cells as booleans, costs and canonical strings.

Pure functions. Cells arrive as whatever the sheet parser produced — str,
int, float, bool or None — and none of these helpers raise on odd input.
"""

from __future__ import annotations

import math
import random
import re
from dataclasses import dataclass
from typing import Any

TRUTHY_TOKENS = frozenset({"1", "yes", "true", "y", "subscribed"})

_CURRENCY_STRIP = re.compile(r"[^0-9.\-]")


def _cell_text(raw: Any) -> str:
    """String form of a cell; whole floats lose their ``.0`` (Excel reads 1 as 1.0)."""
    if raw is None:
        return ""
    if isinstance(raw, bool):
        return "true" if raw else "false"
    if isinstance(raw, float):
        if math.isnan(raw):
            return ""
        if raw.is_integer():
            return str(int(raw))
    return str(raw)


def parse_boolean(raw: Any) -> bool:
    """True iff the trimmed, lower-cased cell is one of ``TRUTHY_TOKENS``."""
    return _cell_text(raw).strip().lower() in TRUTHY_TOKENS


def parse_text(raw: Any, default: str = "") -> str:
    text = _cell_text(raw).strip()
    return text or default


def _parse_number(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        cleaned = _CURRENCY_STRIP.sub("", str(raw))
        if not cleaned or cleaned in {"-", ".", "-."}:
            return None
        try:
            value = float(cleaned)
        except ValueError:
            return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


@dataclass(frozen=True)
class ParsedCost:
    """A cost plus whether it was synthesized rather than read from the sheet."""

    amount: float
    synthetic: bool


def parse_currency(
    raw: Any,
    fallback_range: tuple[float, float],
    rng: random.Random | None = None,
) -> ParsedCost:
    """Parse a cost cell, falling back to a uniform draw from *fallback_range*.

    Source sheets often omit cost, and reports need a non-zero figure to
    aggregate. Unparseable, zero and negative values are all replaced; the
    replacement is flagged ``synthetic=True`` so it is never mistaken for
    source data.

    Args:
        raw: Cell value ("$12,500", 5000, "", None, ...).
        fallback_range: Inclusive (min, max) bounds for the synthesized amount.
        rng: Random source; the module-level generator when omitted.

    Returns:
        ParsedCost with the amount rounded to whole currency units when synthesized.
    """
    value = _parse_number(raw)
    if value is not None and value > 0:
        return ParsedCost(amount=value, synthetic=False)

    low, high = fallback_range
    if low > high:
        low, high = high, low
    lower, upper = int(math.ceil(low)), int(math.floor(high))
    if lower > upper:
        # no whole amount inside the bounds
        return ParsedCost(amount=float(low), synthetic=True)
    draw = (rng or random).randint(lower, upper)
    return ParsedCost(amount=float(draw), synthetic=True)
