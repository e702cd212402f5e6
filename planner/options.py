from __future__ import annotations
import uuid
from dataclasses import replace
from typing import Any, Dict, List, Optional, TypeVar, Union

from models.accommodation import Accommodation, AccommodationDraft
from models.flight import Flight, FlightDraft
from utils.money import coerce_amount

Option = TypeVar("Option", Flight, Accommodation)


def new_id() -> str:
    return str(uuid.uuid4())


def _require_link_and_price(link: Optional[str], price: Any, label: str) -> float:
    """Returns the price as a float; numeric strings from inline edits are accepted."""
    if not link:
        raise ValueError(f"A link is required to add a {label}.")
    amount = coerce_amount(price)
    if amount is None or amount <= 0:
        raise ValueError(f"A price greater than zero is required to add a {label}.")
    return amount


def add_flight_from_draft(flights: List[Flight], draft: FlightDraft) -> List[Flight]:
    price = _require_link_and_price(draft.link, draft.price_per_person, "flight")
    flight = Flight(
        id=new_id(),
        link=draft.link,
        description=draft.description or "",
        start_date=draft.start_date or "",
        end_date=draft.end_date or "",
        price_per_person=price,
    )
    return [*flights, flight]


def add_accommodation_from_draft(accommodations: List[Accommodation], draft: AccommodationDraft) -> List[Accommodation]:
    price = _require_link_and_price(draft.link, draft.total_price, "stay")
    accommodation = Accommodation(
        id=new_id(),
        link=draft.link,
        description=draft.description or "",
        total_price=price,
        start_date=draft.start_date or "",
        end_date=draft.end_date or "",
    )
    return [*accommodations, accommodation]


def remove_option(options: List[Option], option_id: str) -> List[Option]:
    return [o for o in options if o.id != option_id]


def _find(options: List[Option], option_id: str) -> Option:
    for option in options:
        if option.id == option_id:
            return option
    raise KeyError(f"Unknown option {option_id}")


def duplicate_flight(flights: List[Flight], flight_id: str) -> List[Flight]:
    source = _find(flights, flight_id)
    description = f"{source.description} (Copy)" if source.description else "Flight Option (Copy)"
    return [*flights, replace(source, id=new_id(), description=description)]


def duplicate_accommodation(accommodations: List[Accommodation], accommodation_id: str) -> List[Accommodation]:
    source = _find(accommodations, accommodation_id)
    description = f"{source.description} (Copy)" if source.description else "Accommodation (Copy)"
    return [*accommodations, replace(source, id=new_id(), description=description)]


def _edit(options: List[Option], option_id: str, changes: Dict[str, Any], price_field: str, label: str) -> List[Option]:
    edited = replace(_find(options, option_id), **changes)
    price = _require_link_and_price(edited.link, getattr(edited, price_field), label)
    edited = replace(edited, **{price_field: price})
    return [edited if o.id == option_id else o for o in options]


def edit_flight(flights: List[Flight], flight_id: str, **changes: Union[str, float]) -> List[Flight]:
    """Applies field updates (e.g. description=..., price_per_person=...) to one flight."""
    changes.pop("id", None)
    return _edit(flights, flight_id, changes, "price_per_person", "flight")


def edit_accommodation(accommodations: List[Accommodation], accommodation_id: str, **changes: Union[str, float]) -> List[Accommodation]:
    changes.pop("id", None)
    return _edit(accommodations, accommodation_id, changes, "total_price", "stay")
