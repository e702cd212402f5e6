from __future__ import annotations
import math
from typing import Any, Optional

def is_finite_number(x: Any) -> bool:
    # bool is an int subclass but never a JSON number
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)

def coerce_amount(x: Any) -> Optional[float]:
    """Finite non-negative amount from a number or numeric string, else None."""
    if isinstance(x, str):
        try:
            x = float(x.strip())
        except ValueError:
            return None
    if not is_finite_number(x) or x < 0:
        return None
    return float(x)

def per_person(amount: float, people: int) -> float:
    return amount / max(1, people)

def format_currency(value: float) -> str:
    sign = "-" if value < 0 else ""
    return f"{sign}€{abs(value):,.0f}"

def safe_div(a: float, b: float) -> float:
    if b == 0:
        return 0.0
    return a / b
