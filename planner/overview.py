from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from models.accommodation import Accommodation
from models.budget import BudgetSnapshot
from models.destination import Destination
from models.flight import Flight
from models.settings import PlannerSettings
from planner.budget import destination_snapshot
from utils.money import format_currency, safe_div


@dataclass
class DestinationOverview:
    snapshot: BudgetSnapshot
    cheapest_flight: Optional[Flight]
    cheapest_accommodation: Optional[Accommodation]
    selected_accommodation: Optional[Accommodation]
    assigned_travelers: int
    assigned_option_count: int
    average_flight_price: float

    def __str__(self) -> str:
        s = self.snapshot
        lines = [
            f"Total {format_currency(s.total_cost)} | Remaining {format_currency(s.remaining)}"
            f" | {format_currency(s.per_person_total)} per person",
        ]
        if self.assigned_travelers:
            plural = "" if self.assigned_option_count == 1 else "s"
            lines.append(
                f"  Flights: {self.assigned_travelers} travelers across {self.assigned_option_count} option{plural}"
                f" ({format_currency(self.average_flight_price)} average per person)"
            )
        else:
            lines.append("  Flights: no allocations yet")
        if self.selected_accommodation:
            stay = self.selected_accommodation
            lines.append(f"  Stay: {stay.description or 'Unnamed stay'} ({format_currency(stay.total_price)} total)")
        else:
            lines.append("  Stay: not selected yet")
        if s.is_over_assigned:
            lines.append("  ⚠️ More travelers assigned than people in the group")
        return "\n".join(lines)


def summarize_destination(destination: Destination, settings: PlannerSettings) -> DestinationOverview:
    assigned = []
    for flight_id, count in destination.budget_estimator.flight_assignments.items():
        flight = destination.find_flight(flight_id)
        if flight is not None and count > 0:
            assigned.append((flight, count))
    travelers = sum(count for _, count in assigned)
    weighted = sum(flight.price_per_person * count for flight, count in assigned)

    return DestinationOverview(
        snapshot=destination_snapshot(destination, settings),
        cheapest_flight=min(destination.flights, key=lambda f: f.price_per_person, default=None),
        cheapest_accommodation=min(destination.accommodations, key=lambda a: a.total_price, default=None),
        selected_accommodation=destination.find_accommodation(destination.budget_estimator.selected_accommodation_id),
        assigned_travelers=travelers,
        assigned_option_count=len(assigned),
        average_flight_price=safe_div(weighted, travelers),
    )
