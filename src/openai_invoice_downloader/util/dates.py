from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional

from dateutil.parser import parserinfo


_PARSER_INFO = parserinfo()

# "15 Mar 2024", "5 September 2024"
_DAY_MONTH_YEAR_RE = re.compile(r"\b(\d{1,2})\s+([A-Za-z]+)\.?\s+(\d{4})\b")
# "March 15, 2024", "Mar 5, 2024"
_MONTH_DAY_YEAR_RE = re.compile(r"\b([A-Za-z]+)\.?\s+(\d{1,2}),\s+(\d{4})\b")


def _build_date(day: str, month_name: str, year: str) -> Optional[date]:
    month = _PARSER_INFO.month(month_name)
    if not month:
        return None
    try:
        return date(int(year), month, int(day))
    except ValueError:
        return None


def parse_invoice_date(value: str) -> Optional[date]:
    """
    Parse the two human-readable shapes the billing portal uses:
    - "15 Mar 2024" (portal UI)
    - "March 15, 2024" / "Mar 15, 2024" (API dates rendered en-US)

    Returns None for anything else.
    """
    s = (value or "").strip()
    if not s:
        return None

    m = _DAY_MONTH_YEAR_RE.search(s)
    if m:
        d = _build_date(m.group(1), m.group(2), m.group(3))
        if d:
            return d

    m = _MONTH_DAY_YEAR_RE.search(s)
    if m:
        d = _build_date(m.group(2), m.group(1), m.group(3))
        if d:
            return d

    return None


def format_invoice_date(value: str) -> str:
    """
    Canonical `YYYY-MM-DD` for filenames.

    Unrecognized inputs are kept literally with whitespace runs turned into "_" and commas dropped,
    e.g. "15/03/2024" -> "15/03/2024", "Unknown date" -> "Unknown_date".
    """
    d = parse_invoice_date(value)
    if d:
        return d.isoformat()
    return re.sub(r"\s+", "_", (value or "").strip()).replace(",", "")


def format_unix_date(ts: int) -> str:
    """
    Unix seconds -> "Mar 5, 2024" (UTC), matching how the portal UI renders dates in en-US.
    """
    dt = datetime.fromtimestamp(int(ts), tz=timezone.utc)
    return f"{dt:%b} {dt.day}, {dt.year}"
