from __future__ import annotations
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from models.accommodation import Accommodation, AccommodationDraft
from models.budget import BudgetAttempt, BudgetEstimatorState, ExtraCost
from models.destination import Destination
from models.flight import Flight, FlightDraft
from models.settings import DEFAULT_SETTINGS, PlannerSettings
from models.trip import TripDocument, TripMeta
from utils.money import coerce_amount, is_finite_number

logger = logging.getLogger(__name__)

T = TypeVar("T")

LEGACY_EXTRA_COST_DESCRIPTION = "General extra cost"

# Every normalizer here accepts decoded JSON of any shape and never raises:
# bad records are dropped, bad optional fields fall back to defaults.


def _string_field(record: Dict[str, Any], key: str) -> Optional[str]:
    """Missing means empty; present but not a string means the record is invalid."""
    value = record.get(key, "")
    return value if isinstance(value, str) else None


def _has_id(record: Any) -> bool:
    return isinstance(record, dict) and isinstance(record.get("id"), str) and bool(record["id"])


def _normalize_list(value: Any, decode: Callable[[Dict[str, Any]], Optional[T]], label: str) -> List[T]:
    if not isinstance(value, list):
        return []
    items: List[T] = []
    seen: Set[str] = set()
    for raw in value:
        item = decode(raw) if isinstance(raw, dict) else None
        if item is None:
            logger.debug("Dropped invalid %s record: %r", label, raw)
            continue
        item_id = item.id
        if item_id in seen:
            logger.debug("Dropped duplicate %s id %s", label, item_id)
            continue
        seen.add(item_id)
        items.append(item)
    return items


def _decode_flight(raw: Dict[str, Any]) -> Optional[Flight]:
    if not _has_id(raw):
        return None
    price = coerce_amount(raw.get("pricePerPerson"))
    link = _string_field(raw, "link")
    description = _string_field(raw, "description")
    start_date = _string_field(raw, "startDate")
    end_date = _string_field(raw, "endDate")
    if price is None or None in (link, description, start_date, end_date):
        return None
    return Flight(
        id=raw["id"],
        link=link,
        description=description,
        start_date=start_date,
        end_date=end_date,
        price_per_person=price,
    )


def _decode_accommodation(raw: Dict[str, Any]) -> Optional[Accommodation]:
    if not _has_id(raw):
        return None
    price = coerce_amount(raw.get("totalPrice"))
    link = _string_field(raw, "link")
    description = _string_field(raw, "description")
    start_date = _string_field(raw, "startDate")
    end_date = _string_field(raw, "endDate")
    if price is None or None in (link, description, start_date, end_date):
        return None
    return Accommodation(
        id=raw["id"],
        link=link,
        description=description,
        total_price=price,
        start_date=start_date,
        end_date=end_date,
    )


def normalize_flights(value: Any) -> List[Flight]:
    return _normalize_list(value, _decode_flight, "flight")


def normalize_accommodations(value: Any) -> List[Accommodation]:
    return _normalize_list(value, _decode_accommodation, "accommodation")


def normalize_extra_costs(value: Any) -> List[ExtraCost]:
    # Older documents stored a single aggregate number.
    if is_finite_number(value):
        return [ExtraCost(LEGACY_EXTRA_COST_DESCRIPTION, float(value))] if value > 0 else []
    if not isinstance(value, list):
        return []

    costs: List[ExtraCost] = []
    for raw in value:
        raw = raw if isinstance(raw, dict) else {}
        description = raw.get("description")
        amount = raw.get("value")
        cost = ExtraCost(
            description=description if isinstance(description, str) else "",
            value=float(amount) if is_finite_number(amount) and amount >= 0 else 0.0,
        )
        if cost.description.strip() or cost.value > 0:
            costs.append(cost)
    return costs


def normalize_flight_assignments(value: Any) -> Dict[str, int]:
    if not isinstance(value, dict):
        return {}
    assignments: Dict[str, int] = {}
    for flight_id, count in value.items():
        if not isinstance(flight_id, str) or not is_finite_number(count) or count < 0:
            continue
        whole = int(math.floor(count))
        # zero travelers is represented by the key being absent
        if whole > 0:
            assignments[flight_id] = whole
    return assignments


def _number_or_zero(value: Any) -> float:
    return float(value) if is_finite_number(value) else 0.0


def normalize_budget_attempt(value: Any) -> Optional[BudgetAttempt]:
    if not _has_id(value):
        return None
    name = value.get("name")
    created_at = value.get("createdAt")
    selected = value.get("selectedAccommodationId")
    return BudgetAttempt(
        id=value["id"],
        name=name if isinstance(name, str) else "",
        created_at=int(created_at) if is_finite_number(created_at) else 0,
        flight_assignments=normalize_flight_assignments(value.get("flightAssignments")),
        selected_accommodation_id=selected if isinstance(selected, str) else "",
        total_cost=_number_or_zero(value.get("totalCost")),
        remaining=_number_or_zero(value.get("remaining")),
        per_person_total=_number_or_zero(value.get("perPersonTotal")),
    )


def normalize_budget_estimator(value: Any) -> BudgetEstimatorState:
    """
    Rebuilds the single saved-attempt slot: the attempt matching `fixedAttemptId`
    wins, otherwise the first valid attempt, otherwise none.
    """
    if not isinstance(value, dict):
        return BudgetEstimatorState()

    raw_attempts = value.get("attempts")
    attempts = [a for a in map(normalize_budget_attempt, raw_attempts if isinstance(raw_attempts, list) else []) if a]
    fixed_id = value.get("fixedAttemptId")
    attempt = next((a for a in attempts if a.id == fixed_id), None) or (attempts[0] if attempts else None)
    if len(attempts) > 1:
        logger.debug("Collapsed %d saved attempts into one", len(attempts))

    selected = value.get("selectedAccommodationId")
    return BudgetEstimatorState(
        flight_assignments=normalize_flight_assignments(value.get("flightAssignments")),
        selected_accommodation_id=selected if isinstance(selected, str) else "",
        attempt=attempt,
    )


def _draft_strings(value: Dict[str, Any]) -> Dict[str, str]:
    keys = {"link": "link", "description": "description", "startDate": "start_date", "endDate": "end_date"}
    return {attr: value[key] for key, attr in keys.items() if isinstance(value.get(key), str)}


def _draft_price(value: Any) -> Optional[float]:
    return float(value) if is_finite_number(value) and value >= 0 else None


def normalize_flight_draft(value: Any) -> FlightDraft:
    if not isinstance(value, dict):
        return FlightDraft()
    return FlightDraft(price_per_person=_draft_price(value.get("pricePerPerson")), **_draft_strings(value))


def normalize_accommodation_draft(value: Any) -> AccommodationDraft:
    if not isinstance(value, dict):
        return AccommodationDraft()
    return AccommodationDraft(total_price=_draft_price(value.get("totalPrice")), **_draft_strings(value))


def normalize_settings(value: Any, fallback: PlannerSettings = DEFAULT_SETTINGS) -> PlannerSettings:
    if not isinstance(value, dict):
        return PlannerSettings(fallback.total_budget, fallback.people_count)

    budget = value.get("totalBudget")
    people = value.get("peopleCount")
    people_ok = is_finite_number(people) and math.floor(people) >= 1
    return PlannerSettings(
        total_budget=float(budget) if is_finite_number(budget) and budget >= 0 else fallback.total_budget,
        people_count=int(math.floor(people)) if people_ok else fallback.people_count,
    )


def normalize_destination(value: Any) -> Optional[Destination]:
    if not isinstance(value, dict):
        return None
    if not (
        isinstance(value.get("id"), str)
        and value["id"]
        and isinstance(value.get("name"), str)
        and is_finite_number(value.get("latitude"))
        and is_finite_number(value.get("longitude"))
        and isinstance(value.get("flights", []), list)
        and isinstance(value.get("accommodations", []), list)
    ):
        return None

    # Firebase drops empty lists, so an absent collection means no options yet.
    flights = normalize_flights(value.get("flights", []))
    accommodations = normalize_accommodations(value.get("accommodations", []))
    estimator = normalize_budget_estimator(value.get("budgetEstimator"))

    # The live selection may only reference this destination's own options.
    flight_ids = {f.id for f in flights}
    estimator.flight_assignments = {k: v for k, v in estimator.flight_assignments.items() if k in flight_ids}
    if not any(a.id == estimator.selected_accommodation_id for a in accommodations):
        estimator.selected_accommodation_id = ""

    notes = value.get("notes")
    return Destination(
        id=value["id"],
        name=value["name"],
        latitude=float(value["latitude"]),
        longitude=float(value["longitude"]),
        notes=notes if isinstance(notes, str) else "",
        extra_costs=normalize_extra_costs(value.get("extraCosts")),
        budget_estimator=estimator,
        flight_draft=normalize_flight_draft(value.get("flightDraft")),
        accommodation_draft=normalize_accommodation_draft(value.get("accommodationDraft")),
        flights=flights,
        accommodations=accommodations,
    )


def normalize_destinations(value: Any) -> List[Destination]:
    if not isinstance(value, list):
        return []
    destinations: List[Destination] = []
    seen: Set[str] = set()
    for raw in value:
        destination = normalize_destination(raw)
        if destination is None or destination.id in seen:
            logger.debug("Dropped destination record: %r", raw if destination is None else destination.id)
            continue
        seen.add(destination.id)
        destinations.append(destination)
    return destinations


def normalize_trip_payload(value: Any, fallback_settings: PlannerSettings = DEFAULT_SETTINGS) -> Optional[TripDocument]:
    """
    Validates a whole document from the remote store or a file import.
    Returns None when the shape is wrong or when a non-empty destination list
    contains no usable destination at all.
    """
    if not isinstance(value, dict):
        return None
    # a synced trip with no destinations comes back from Firebase without the key
    raw_destinations = value.get("destinations", [] if isinstance(value.get("meta"), dict) else None)
    if not isinstance(raw_destinations, list):
        return None

    destinations = normalize_destinations(raw_destinations)
    if raw_destinations and not destinations:
        logger.warning("Rejected trip payload: none of %d destinations are valid", len(raw_destinations))
        return None

    meta = value.get("meta") if isinstance(value.get("meta"), dict) else {}
    updated_at = meta.get("updatedAt")
    updated_by = meta.get("updatedBy")
    return TripDocument(
        destinations=destinations,
        settings=normalize_settings(value.get("settings"), fallback_settings),
        meta=TripMeta(
            updated_at=int(updated_at) if is_finite_number(updated_at) else None,
            updated_by=updated_by if isinstance(updated_by, str) else None,
        ),
    )
