from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.accommodation import Accommodation, AccommodationDraft
from models.budget import BudgetEstimatorState, ExtraCost
from models.flight import Flight, FlightDraft

@dataclass
class Destination:
    id: str
    name: str
    latitude: float
    longitude: float
    notes: str = ""
    extra_costs: List[ExtraCost] = field(default_factory=list)
    budget_estimator: BudgetEstimatorState = field(default_factory=BudgetEstimatorState)
    flight_draft: FlightDraft = field(default_factory=FlightDraft)
    accommodation_draft: AccommodationDraft = field(default_factory=AccommodationDraft)
    flights: List[Flight] = field(default_factory=list)
    accommodations: List[Accommodation] = field(default_factory=list)

    def find_flight(self, flight_id: str) -> Optional[Flight]:
        return next((f for f in self.flights if f.id == flight_id), None)

    def find_accommodation(self, accommodation_id: str) -> Optional[Accommodation]:
        return next((a for a in self.accommodations if a.id == accommodation_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "notes": self.notes,
            "extraCosts": [c.to_dict() for c in self.extra_costs],
            "budgetEstimator": self.budget_estimator.to_dict(),
            "flightDraft": self.flight_draft.to_dict(),
            "accommodationDraft": self.accommodation_draft.to_dict(),
            "flights": [f.to_dict() for f in self.flights],
            "accommodations": [a.to_dict() for a in self.accommodations],
        }
