from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import List

from models.accommodation import Accommodation
from models.flight import Flight
from planner.options import new_id
from utils.date_parser import parse_date

ROW_FORMAT_ERROR = "Expected: description, price, link, startDate, endDate"


@dataclass
class BulkRow:
    line_number: int
    description: str
    price: float
    link: str
    start_date: str
    end_date: str
    error: str = ""
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.error


def _parse_price(raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        return math.nan


def _date_warnings(start_date: str, end_date: str) -> List[str]:
    # Dates are kept exactly as typed; these are hints only.
    warnings: List[str] = []
    start = parse_date(start_date) if start_date else None
    end = parse_date(end_date) if end_date else None
    if start_date and start is None:
        warnings.append(f"Unrecognized start date '{start_date}'")
    if end_date and end is None:
        warnings.append(f"Unrecognized end date '{end_date}'")
    if start and end and end < start:
        warnings.append("End date is before start date")
    return warnings


def parse_bulk_rows(text: str) -> List[BulkRow]:
    """
    Parses pasted lines of `description, price, link, startDate, endDate`.
    Blank lines are skipped; line numbers refer to the original text.
    """
    rows: List[BulkRow] = []
    for line_number, line in enumerate((text or "").split("\n"), start=1):
        line = line.strip()
        if not line:
            continue
        parts = [p.strip() for p in line.split(",")]
        parts += [""] * (5 - len(parts))
        description, raw_price, link, start_date, end_date = parts[:5]
        price = _parse_price(raw_price) if raw_price else math.nan

        error = ""
        if not link or not math.isfinite(price) or price <= 0:
            error = ROW_FORMAT_ERROR
        rows.append(
            BulkRow(
                line_number=line_number,
                description=description,
                price=price if math.isfinite(price) else 0.0,
                link=link,
                start_date=start_date,
                end_date=end_date,
                error=error,
                warnings=_date_warnings(start_date, end_date),
            )
        )
    return rows


def bulk_flights(rows: List[BulkRow]) -> List[Flight]:
    return [
        Flight(
            id=new_id(),
            link=r.link,
            description=r.description,
            start_date=r.start_date,
            end_date=r.end_date,
            price_per_person=r.price,
        )
        for r in rows
        if r.is_valid
    ]


def bulk_accommodations(rows: List[BulkRow]) -> List[Accommodation]:
    return [
        Accommodation(
            id=new_id(),
            link=r.link,
            description=r.description,
            total_price=r.price,
            start_date=r.start_date,
            end_date=r.end_date,
        )
        for r in rows
        if r.is_valid
    ]
