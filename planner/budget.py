from __future__ import annotations
from typing import Dict, List

from models.accommodation import Accommodation
from models.budget import BudgetSnapshot, ExtraCost
from models.destination import Destination
from models.flight import Flight
from models.settings import PlannerSettings
from utils.money import per_person


def calculate_budget_snapshot(
    flights: List[Flight],
    accommodations: List[Accommodation],
    flight_assignments: Dict[str, int],
    selected_accommodation_id: str,
    extra_costs: List[ExtraCost],
    settings: PlannerSettings,
) -> BudgetSnapshot:
    """
    Derives the cost breakdown for one flight/accommodation selection.
    Assignments pointing at flights that no longer exist contribute nothing.
    """
    prices = {f.id: f.price_per_person for f in flights}

    flight_cost = 0.0
    assigned_people_count = 0
    for flight_id, count in flight_assignments.items():
        if flight_id not in prices:
            continue
        flight_cost += prices[flight_id] * count
        assigned_people_count += count

    accommodation = next((a for a in accommodations if a.id == selected_accommodation_id), None)
    accommodation_cost = accommodation.total_price if accommodation else 0.0

    extra_costs_cost = sum(c.value for c in extra_costs)
    total_cost = flight_cost + accommodation_cost + extra_costs_cost
    remaining = settings.total_budget - total_cost

    return BudgetSnapshot(
        assigned_people_count=assigned_people_count,
        flight_cost=float(flight_cost),
        accommodation_cost=float(accommodation_cost),
        extra_costs_cost=float(extra_costs_cost),
        total_cost=float(total_cost),
        remaining=float(remaining),
        per_person_total=per_person(total_cost, settings.people_count),
        per_person_remaining=per_person(remaining, settings.people_count),
        is_over_assigned=assigned_people_count > settings.people_count,
    )


def destination_snapshot(destination: Destination, settings: PlannerSettings) -> BudgetSnapshot:
    estimator = destination.budget_estimator
    return calculate_budget_snapshot(
        flights=destination.flights,
        accommodations=destination.accommodations,
        flight_assignments=estimator.flight_assignments,
        selected_accommodation_id=estimator.selected_accommodation_id,
        extra_costs=destination.extra_costs,
        settings=settings,
    )
