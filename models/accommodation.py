from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

@dataclass
class Accommodation:
    id: str
    link: str
    description: str
    # whole-stay price, not per night or per person
    total_price: float
    start_date: str
    end_date: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "link": self.link,
            "description": self.description,
            "totalPrice": self.total_price,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }


@dataclass
class AccommodationDraft:
    link: Optional[str] = None
    description: Optional[str] = None
    total_price: Optional[float] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            "link": self.link,
            "description": self.description,
            "totalPrice": self.total_price,
            "startDate": self.start_date,
            "endDate": self.end_date,
        }
        return {k: v for k, v in fields.items() if v is not None}
