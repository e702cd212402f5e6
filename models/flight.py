from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

@dataclass
class Flight:
    id: str
    link: str
    description: str
    start_date: str
    end_date: str
    # per-person fare; trip cost is price * assigned travelers
    price_per_person: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "link": self.link,
            "description": self.description,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "pricePerPerson": self.price_per_person,
        }


@dataclass
class FlightDraft:
    """Partially filled flight backing the quick-add form."""
    link: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    price_per_person: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            "link": self.link,
            "description": self.description,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "pricePerPerson": self.price_per_person,
        }
        return {k: v for k, v in fields.items() if v is not None}
