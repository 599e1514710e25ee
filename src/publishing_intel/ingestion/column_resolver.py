"""Map loosely-named spreadsheet columns onto semantic fields.

Export files do not share a schema, so columns are matched by
case-insensitive substring containment against a table of candidates.
The first column (in the row's own order) that contains any candidate
wins; candidate order never changes which column is picked.
A candidate that only occurs right after a negating word prefix
("Inactive", "Unsubscribed", "Non-Subscribed") does not count as a match.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Sequence

# (semantic field, candidate substrings), evaluated in this order
FIELD_CANDIDATES: list[tuple[str, list[str]]] = [
    ("journal_title", ["journal", "title", "publication", "name"]),
    ("subscribed", ["current", "current_year", "2024", "subscribed", "active"]),
    ("previous_year", ["previous", "2023", "last year", "prev"]),
    ("publisher", ["publisher", "company", "provider"]),
    ("subject_area", ["subject", "category", "area", "field", "discipline"]),
    ("cost", ["cost", "price", "amount", "fee"]),
    ("issn", ["issn", "identifier"]),
]

FIELD_NAMES: list[str] = [name for name, _ in FIELD_CANDIDATES]

# a negating prefix at the start of a word, immediately before the candidate
_NEGATED = re.compile(r"(?:^|[^a-z0-9])(?:non-?|un|in)$")


def candidates_for(field: str) -> list[str]:
    for name, candidates in FIELD_CANDIDATES:
        if name == field:
            return candidates
    raise KeyError(field)


def _contains(key: str, candidate: str) -> bool:
    start = key.find(candidate)
    while start != -1:
        if not _NEGATED.search(key[:start]):
            return True
        start = key.find(candidate, start + 1)
    return False


def resolve_column(columns: Sequence[Any], candidates: Sequence[str]) -> Any | None:
    """Return the first column name containing any candidate, or None."""
    lowered = [c.lower() for c in candidates]
    for column in columns:
        key = str(column).lower()
        if any(_contains(key, c) for c in lowered):
            return column
    return None


def resolve(row: Mapping[Any, Any], candidates: Sequence[str]) -> Any | None:
    """Value of the first matching column in *row*, or None when nothing matches."""
    column = resolve_column(list(row.keys()), candidates)
    if column is None:
        return None
    return row[column]


def resolve_fields(row: Mapping[Any, Any]) -> dict[str, Any | None]:
    """Evaluate every entry of ``FIELD_CANDIDATES`` against *row*."""
    return {name: resolve(row, candidates) for name, candidates in FIELD_CANDIDATES}


def has_title_column(columns: Sequence[Any]) -> bool:
    return resolve_column(columns, candidates_for("journal_title")) is not None
