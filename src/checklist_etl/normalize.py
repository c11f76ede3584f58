"""Normalization functions for checklist CSV ingestion.

All functions accept str | None and never raise on bad input.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

_SPACE_RE = re.compile(r"\s+")
_STORE_TOKEN_RE = re.compile(r"[^a-z0-9]")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_header
# ---------------------------------------------------------------------------

def normalize_header(value: str | None) -> str:
    """Canonical header token: trimmed, lowercased, whitespace runs -> '_'.

    'Athlete Full  Name ' -> 'athlete_full_name'.  None/blank -> ''.
    """
    if value is None:
        return ""
    return _SPACE_RE.sub("_", str(value).strip().lower())


# ---------------------------------------------------------------------------
# Rule 3: sanitize_name  (store file tokens)
# ---------------------------------------------------------------------------

def sanitize_name(value: str | None) -> str:
    """Lowercase, then replace every char outside [a-z0-9] with '_'.

    One underscore per character, no collapsing: 'Topps Chrome' -> 'topps_chrome'.
    """
    if value is None:
        return ""
    return _STORE_TOKEN_RE.sub("_", str(value).lower())


# ---------------------------------------------------------------------------
# Rule 4: parse_numbering
# ---------------------------------------------------------------------------

def parse_numbering(value: str | int | float | None) -> int | float:
    """Coerce a numbering/print-run cell to a number, defaulting to 0.

    Only plain decimal literals parse ('25', ' 25 ', '12.5', '-3').
    Print-run strings such as '/99', blanks, and non-finite values give 0.
    Integral results are returned as int.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        d = Decimal(str(value))
    else:
        v = trim(value)
        # Decimal() accepts digit separators ('1_000')
        if v is None or "_" in v:
            return 0
        try:
            d = Decimal(v)
        except InvalidOperation:
            return 0
    if not d.is_finite():
        return 0
    if d == d.to_integral_value():
        return int(d)
    return float(d)
