from __future__ import annotations
import time
import uuid
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from models.accommodation import Accommodation
from models.budget import BudgetAttempt, BudgetEstimatorState, ExtraCost
from models.destination import Destination
from models.flight import Flight
from models.settings import PlannerSettings
from planner.budget import calculate_budget_snapshot
from utils.money import is_finite_number

DEFAULT_ATTEMPT_NAME = "Saved baseline"

# Pure transformations of a Destination. Each returns a new record and keeps
# every reference into `flights` / `accommodations` pointing at something that exists.


def now_ms() -> int:
    return int(time.time() * 1000)


def _prune_assignments(assignments: Dict[str, int], flight_ids: Iterable[str]) -> Dict[str, int]:
    valid = set(flight_ids)
    return {k: v for k, v in assignments.items() if k in valid}


def _resnapshot(
    attempt: BudgetAttempt,
    flights: List[Flight],
    accommodations: List[Accommodation],
    extra_costs: List[ExtraCost],
    settings: PlannerSettings,
) -> BudgetAttempt:
    snapshot = calculate_budget_snapshot(
        flights=flights,
        accommodations=accommodations,
        flight_assignments=attempt.flight_assignments,
        selected_accommodation_id=attempt.selected_accommodation_id,
        extra_costs=extra_costs,
        settings=settings,
    )
    return replace(
        attempt,
        total_cost=snapshot.total_cost,
        remaining=snapshot.remaining,
        per_person_total=snapshot.per_person_total,
    )


def replace_flights(destination: Destination, flights: List[Flight], settings: PlannerSettings) -> Destination:
    """
    Swaps in a new flight list. Live and saved assignments lose keys for removed
    flights and the saved attempt's totals are recomputed against the new list.
    """
    flight_ids = [f.id for f in flights]
    estimator = destination.budget_estimator

    attempt = estimator.attempt
    if attempt is not None:
        attempt = replace(attempt, flight_assignments=_prune_assignments(attempt.flight_assignments, flight_ids))
        attempt = _resnapshot(attempt, flights, destination.accommodations, destination.extra_costs, settings)

    return replace(
        destination,
        flights=list(flights),
        budget_estimator=replace(
            estimator,
            flight_assignments=_prune_assignments(estimator.flight_assignments, flight_ids),
            attempt=attempt,
        ),
    )


def replace_accommodations(
    destination: Destination, accommodations: List[Accommodation], settings: PlannerSettings
) -> Destination:
    accommodation_ids = {a.id for a in accommodations}
    estimator = destination.budget_estimator

    selected = estimator.selected_accommodation_id
    if selected not in accommodation_ids:
        selected = ""

    attempt = estimator.attempt
    if attempt is not None:
        if attempt.selected_accommodation_id not in accommodation_ids:
            attempt = replace(attempt, selected_accommodation_id="")
        attempt = _resnapshot(attempt, destination.flights, accommodations, destination.extra_costs, settings)

    return replace(
        destination,
        accommodations=list(accommodations),
        budget_estimator=replace(estimator, selected_accommodation_id=selected, attempt=attempt),
    )


def replace_extra_costs(destination: Destination, extra_costs: List[ExtraCost]) -> Destination:
    for cost in extra_costs:
        if not is_finite_number(cost.value) or cost.value < 0:
            raise ValueError("Extra cost values must be non-negative numbers")
        # blank zero rows are dropped on load, so they are never stored
        if not cost.description.strip() and cost.value == 0:
            raise ValueError("An extra cost needs a description or a value")
    return replace(destination, extra_costs=list(extra_costs))


def set_flight_assignment(destination: Destination, flight_id: str, count: int) -> Destination:
    if count < 0:
        raise ValueError("Traveler count cannot be negative")
    if destination.find_flight(flight_id) is None:
        raise KeyError(f"Unknown flight {flight_id}")

    assignments = dict(destination.budget_estimator.flight_assignments)
    if int(count) == 0:
        assignments.pop(flight_id, None)
    else:
        assignments[flight_id] = int(count)
    return replace(destination, budget_estimator=replace(destination.budget_estimator, flight_assignments=assignments))


def select_accommodation(destination: Destination, accommodation_id: str) -> Destination:
    if accommodation_id and destination.find_accommodation(accommodation_id) is None:
        raise KeyError(f"Unknown accommodation {accommodation_id}")
    return replace(
        destination,
        budget_estimator=replace(destination.budget_estimator, selected_accommodation_id=accommodation_id),
    )


# ---- saved attempt slot: Empty <-> Saved ----

def _capture_attempt(
    destination: Destination, settings: PlannerSettings, name: str, attempt_id: str, created_at: int
) -> BudgetAttempt:
    estimator = destination.budget_estimator
    attempt = BudgetAttempt(
        id=attempt_id,
        name=name,
        created_at=created_at,
        flight_assignments=dict(estimator.flight_assignments),
        selected_accommodation_id=estimator.selected_accommodation_id,
    )
    return _resnapshot(attempt, destination.flights, destination.accommodations, destination.extra_costs, settings)


def _with_attempt(destination: Destination, attempt: Optional[BudgetAttempt]) -> Destination:
    return replace(destination, budget_estimator=replace(destination.budget_estimator, attempt=attempt))


def save_attempt(
    destination: Destination,
    settings: PlannerSettings,
    name: str = DEFAULT_ATTEMPT_NAME,
    created_at: Optional[int] = None,
) -> Destination:
    """Saves the live selection as the baseline. Does nothing when one is already saved."""
    if destination.budget_estimator.attempt is not None:
        return destination
    attempt = _capture_attempt(
        destination, settings, name or DEFAULT_ATTEMPT_NAME, str(uuid.uuid4()),
        created_at if created_at is not None else now_ms(),
    )
    return _with_attempt(destination, attempt)


def clear_attempt(destination: Destination) -> Destination:
    return _with_attempt(destination, None)


def override_attempt(
    destination: Destination, settings: PlannerSettings, created_at: Optional[int] = None
) -> Destination:
    """Replaces the saved baseline with the live selection, keeping its id and name."""
    current = destination.budget_estimator.attempt
    if current is None:
        return save_attempt(destination, settings, created_at=created_at)
    attempt = _capture_attempt(
        destination, settings, current.name, current.id,
        created_at if created_at is not None else now_ms(),
    )
    return _with_attempt(destination, attempt)


def apply_attempt(destination: Destination) -> Destination:
    """Copies the saved baseline back into the live selection; the baseline itself is untouched."""
    attempt = destination.budget_estimator.attempt
    if attempt is None:
        return destination
    selected = attempt.selected_accommodation_id
    if destination.find_accommodation(selected) is None:
        selected = ""
    estimator = BudgetEstimatorState(
        flight_assignments=_prune_assignments(attempt.flight_assignments, (f.id for f in destination.flights)),
        selected_accommodation_id=selected,
        attempt=attempt,
    )
    return replace(destination, budget_estimator=estimator)
