"""Spreadsheet parsing — workbook → ordered sheets → header-keyed rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from publishing_intel.errors import UnreadableWorkbookError

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """NaN/NaT → None, numpy scalars → Python scalars."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, str) and not value.strip():
        return None
    return value


def frame_to_rows(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Convert a sheet DataFrame into row dicts in column order.

    Unnamed header cells (pandas' ``Unnamed: N``) are kept so column
    positions stay stable; fully blank rows are dropped.
    """
    df = df.dropna(how="all")
    columns = [str(c) for c in df.columns]
    rows = []
    for values in df.itertuples(index=False, name=None):
        rows.append({col: _plain(v) for col, v in zip(columns, values)})
    return rows


@dataclass
class Workbook:
    """An opened workbook: sheet names in file order plus lazily parsed rows."""

    path: Path
    sheet_names: list[str]
    _frames: dict[str, pd.DataFrame] = field(default_factory=dict, repr=False)

    def rows(self, sheet_name: str) -> list[dict[str, Any]]:
        if sheet_name not in self._frames:
            raise KeyError(sheet_name)
        return frame_to_rows(self._frames[sheet_name])


def read_workbook(path: Path) -> Workbook:
    """Open *path* and parse every sheet.

    Raises:
        UnreadableWorkbookError: the file is missing, corrupt, or not a workbook.
    """
    try:
        frames = pd.read_excel(path, sheet_name=None, engine="openpyxl")
    except Exception as exc:
        raise UnreadableWorkbookError(f"Cannot read workbook {path.name}: {exc}") from exc
    if not frames:
        raise UnreadableWorkbookError(f"Workbook {path.name} has no sheets")
    return Workbook(path=path, sheet_names=list(frames.keys()), _frames=dict(frames))


def select_sheet(sheet_names: list[str], strategy: str = "pattern", patterns: list[str] | None = None) -> str:
    """Pick the sheet to ingest.

    ``"first"`` always takes the first sheet. ``"pattern"`` takes the first
    sheet whose name contains any of *patterns* (case-insensitive) and
    falls back to the first sheet.
    """
    if not sheet_names:
        raise ValueError("Workbook has no sheets")
    if strategy == "pattern":
        lowered = [p.lower() for p in (patterns or [])]
        for name in sheet_names:
            if any(p in name.lower() for p in lowered):
                return name
    elif strategy != "first":
        logger.warning("Unknown sheet selection strategy %r — using first sheet", strategy)
    return sheet_names[0]
