from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

@dataclass
class ExtraCost:
    description: str = ""
    value: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "value": self.value}


@dataclass
class BudgetSnapshot:
    assigned_people_count: int = 0
    flight_cost: float = 0.0
    accommodation_cost: float = 0.0
    extra_costs_cost: float = 0.0
    total_cost: float = 0.0
    remaining: float = 0.0
    per_person_total: float = 0.0
    per_person_remaining: float = 0.0
    is_over_assigned: bool = False

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0


@dataclass
class BudgetAttempt:
    """
    A saved baseline: one flight/accommodation selection frozen together with
    the totals it produced when it was saved.
    """
    id: str
    name: str
    created_at: int
    flight_assignments: Dict[str, int] = field(default_factory=dict)
    selected_accommodation_id: str = ""
    total_cost: float = 0.0
    remaining: float = 0.0
    per_person_total: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at,
            "flightAssignments": dict(self.flight_assignments),
            "selectedAccommodationId": self.selected_accommodation_id,
            "totalCost": self.total_cost,
            "remaining": self.remaining,
            "perPersonTotal": self.per_person_total,
        }


@dataclass
class BudgetEstimatorState:
    flight_assignments: Dict[str, int] = field(default_factory=dict)
    selected_accommodation_id: str = ""
    # single saved slot; older documents stored a list of attempts
    attempt: Optional[BudgetAttempt] = None

    @property
    def fixed_attempt_id(self) -> str:
        return self.attempt.id if self.attempt else ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flightAssignments": dict(self.flight_assignments),
            "selectedAccommodationId": self.selected_accommodation_id,
            "fixedAttemptId": self.fixed_attempt_id,
            "attempts": [self.attempt.to_dict()] if self.attempt else [],
        }
