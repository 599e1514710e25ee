"""Derive a university's identity from an export filename.

Exports are named like ``Export_Aalborg_University_20250805_095356.xlsx``.
The display name is what remains after stripping the ``Export_`` prefix and
the trailing ``_<8 digits>_<6 digits>`` timestamp, with underscores turned
into spaces. Known institutions are canonicalised through a static alias
table; anything else is accepted only when the filename follows the export
naming pattern, so an arbitrary file is never attributed to a guessed name.
"""

from __future__ import annotations

import re
from pathlib import Path

from publishing_intel.errors import UnidentifiedUniversityError

_PREFIX = re.compile(r"^export_", re.IGNORECASE)
_TIMESTAMP_SUFFIX = re.compile(r"_\d{8}_\d{6}$")

# canonical display name -> lower-case aliases that may appear in a filename
KNOWN_UNIVERSITIES: dict[str, list[str]] = {
    "National University of Singapore": ["national university of singapore", "nus"],
    "Nanyang Technological University": ["nanyang technological university", "nanyang", "ntu"],
    "Mahidol University": ["mahidol university", "mahidol"],
    "Aalborg University": ["aalborg university", "aalborg"],
}

COUNTRY_TABLE: dict[str, list[str]] = {
    "Singapore": ["National University of Singapore", "Nanyang Technological University"],
    "Thailand": ["Mahidol University"],
    "Denmark": ["Aalborg University"],
}


def extract_university_name(filename: str) -> str:
    """Strip prefix, timestamp and extension; underscores become spaces."""
    stem = Path(filename).stem
    stem = _PREFIX.sub("", stem)
    stem = _TIMESTAMP_SUFFIX.sub("", stem)
    return " ".join(stem.replace("_", " ").split())


def follows_export_pattern(filename: str) -> bool:
    stem = Path(filename).stem
    return bool(_PREFIX.match(stem) or _TIMESTAMP_SUFFIX.search(stem))


def _alias_matches(alias: str, text: str) -> bool:
    # short aliases ("nus", "ntu") must stand alone, not hide inside a word
    return re.search(rf"(?<![a-z0-9]){re.escape(alias)}(?![a-z0-9])", text) is not None


def match_known_university(name: str) -> str | None:
    """Canonical name for *name* if any alias of a known university occurs in it."""
    text = " ".join(name.lower().replace("_", " ").split())
    for canonical, aliases in KNOWN_UNIVERSITIES.items():
        if any(_alias_matches(alias, text) for alias in aliases):
            return canonical
    return None


def identify_university(filename: str, require_known: bool = False) -> str:
    """Resolve the university a file belongs to.

    Raises:
        UnidentifiedUniversityError: the name is blank, or the file is
            neither a known institution nor named like an export (or
            *require_known* is set and the institution is unknown).
    """
    derived = extract_university_name(filename)
    if not derived:
        raise UnidentifiedUniversityError(f"No university name in filename: {filename}")

    known = match_known_university(derived)
    if known:
        return known
    if require_known:
        raise UnidentifiedUniversityError(f"'{derived}' is not a known university ({filename})")
    if not follows_export_pattern(filename):
        raise UnidentifiedUniversityError(f"Filename does not look like an export: {filename}")
    return derived


def country_for(university_name: str) -> str:
    for country, names in COUNTRY_TABLE.items():
        if any(name in university_name for name in names):
            return country
    return "Unknown"
