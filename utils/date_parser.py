from __future__ import annotations
from datetime import date, datetime
from typing import Optional

import dateparser

def parse_date(value: str) -> Optional[date]:
    """
    Parses the date strings people paste next to flight and stay options:
    - YYYY-MM-DD
    - YYYY/MM/DD
    - DD.MM.YYYY
    - DD/MM/YYYY
    - Natural language dates (e.g., "5 May 2026") via dateparser
    If parsing fails, returns None.
    """
    if not value:
        return None

    v = value.strip()

    fmts = ["%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y", "%d/%m/%Y"]
    for fmt in fmts:
        try:
            return datetime.strptime(v, fmt).date()
        except ValueError:
            pass

    try:
        return datetime.fromisoformat(v).date()
    except ValueError:
        pass

    parsed = dateparser.parse(v, settings={"PREFER_DATES_FROM": "future", "STRICT_PARSING": True})
    if parsed:
        return parsed.date()
    return None
