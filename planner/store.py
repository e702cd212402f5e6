from __future__ import annotations
import logging
import threading
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from models.accommodation import AccommodationDraft
from models.budget import BudgetSnapshot, ExtraCost
from models.destination import Destination
from models.flight import FlightDraft
from models.settings import DEFAULT_SETTINGS, PlannerSettings
from models.trip import TripDocument
from planner import options, reconciler
from planner.budget import destination_snapshot
from planner.bulk_import import BulkRow, bulk_accommodations, bulk_flights, parse_bulk_rows
from planner.normalizers import normalize_destinations, normalize_settings, normalize_trip_payload
from utils.money import is_finite_number

logger = logging.getLogger(__name__)

DESTINATIONS_KEY = "destinations"
SETTINGS_KEY = "settings"

SOURCE_LOCAL = "local"
SOURCE_REMOTE = "remote"

Listener = Callable[[TripDocument, str], None]
DestinationUpdater = Callable[[Destination], Destination]


class PlannerStore:
    """
    Owns the root trip document. Every change is a functional update: an updater
    receives the current value and returns the next one, which is then persisted
    to the key-value store and announced to listeners together with its source
    ("local" for user edits, "remote" for documents applied from sync).
    """

    def __init__(self, kv_store, default_settings: PlannerSettings = DEFAULT_SETTINGS):
        self.kv_store = kv_store
        self._lock = threading.RLock()
        self._listeners: Dict[int, Listener] = {}
        self._next_listener = 0
        self._document = TripDocument(
            destinations=normalize_destinations(kv_store.get(DESTINATIONS_KEY, [])),
            settings=normalize_settings(kv_store.get(SETTINGS_KEY), default_settings),
        )

    # ---- reads ----

    @property
    def document(self) -> TripDocument:
        return self._document

    @property
    def destinations(self) -> List[Destination]:
        return self._document.destinations

    @property
    def settings(self) -> PlannerSettings:
        return self._document.settings

    def get_destination(self, destination_id: str) -> Destination:
        destination = self._document.find_destination(destination_id)
        if destination is None:
            raise KeyError(f"Unknown destination {destination_id}")
        return destination

    def snapshot(self, destination_id: str) -> BudgetSnapshot:
        return destination_snapshot(self.get_destination(destination_id), self.settings)

    # ---- core update path ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            listener_id = self._next_listener
            self._next_listener += 1
            self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def update(self, updater: Callable[[TripDocument], TripDocument], source: str = SOURCE_LOCAL) -> TripDocument:
        with self._lock:
            document = updater(self._document)
            self._document = document
            self.kv_store.set(DESTINATIONS_KEY, [d.to_dict() for d in document.destinations])
            self.kv_store.set(SETTINGS_KEY, document.settings.to_dict())
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(document, source)
        return document

    def replace_document(self, document: TripDocument, source: str = SOURCE_REMOTE) -> TripDocument:
        return self.update(lambda _: document, source=source)

    def update_destination(self, destination_id: str, updater: DestinationUpdater) -> Destination:
        def _apply(document: TripDocument) -> TripDocument:
            current = document.find_destination(destination_id)
            if current is None:
                raise KeyError(f"Unknown destination {destination_id}")
            updated = updater(current)
            return replace(
                document,
                destinations=[updated if d.id == destination_id else d for d in document.destinations],
            )

        return self.update(_apply).find_destination(destination_id)

    def update_settings(self, total_budget: Optional[float] = None, people_count: Optional[int] = None) -> PlannerSettings:
        if total_budget is not None and (not is_finite_number(total_budget) or total_budget < 0):
            raise ValueError("Total budget must be a non-negative number")
        if people_count is not None and (not is_finite_number(people_count) or int(people_count) < 1):
            raise ValueError("People count must be at least 1")

        def _apply(document: TripDocument) -> TripDocument:
            settings = document.settings
            return replace(
                document,
                settings=PlannerSettings(
                    total_budget=float(total_budget) if total_budget is not None else settings.total_budget,
                    people_count=int(people_count) if people_count is not None else settings.people_count,
                ),
            )

        return self.update(_apply).settings

    # ---- destinations ----

    def add_destination(self, name: str, latitude: float, longitude: float) -> Destination:
        name = (name or "").strip()
        if not name:
            raise ValueError("Destination name is required")
        if not is_finite_number(latitude) or not is_finite_number(longitude):
            raise ValueError("Latitude and longitude must be finite numbers")

        destination = Destination(id=str(uuid.uuid4()), name=name, latitude=float(latitude), longitude=float(longitude))
        self.update(lambda doc: replace(doc, destinations=[*doc.destinations, destination]))
        logger.info("Added destination %s (%s)", name, destination.id)
        return destination

    def remove_destination(self, destination_id: str) -> None:
        self.update(lambda doc: replace(doc, destinations=[d for d in doc.destinations if d.id != destination_id]))

    def set_notes(self, destination_id: str, notes: str) -> Destination:
        return self.update_destination(destination_id, lambda d: replace(d, notes=notes))

    def set_extra_costs(self, destination_id: str, extra_costs: List[ExtraCost]) -> Destination:
        return self.update_destination(destination_id, lambda d: reconciler.replace_extra_costs(d, extra_costs))

    def add_extra_cost(self, destination_id: str, description: str, value: float = 0.0) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_extra_costs(d, [*d.extra_costs, ExtraCost(description, float(value))]),
        )

    # ---- flights ----

    def set_flights(self, destination_id: str, flights) -> Destination:
        return self.update_destination(destination_id, lambda d: reconciler.replace_flights(d, flights, self.settings))

    def set_flight_draft(self, destination_id: str, draft: FlightDraft) -> Destination:
        return self.update_destination(destination_id, lambda d: replace(d, flight_draft=draft))

    def add_flight(self, destination_id: str, draft: Optional[FlightDraft] = None) -> Destination:
        """Commits `draft` (or the destination's saved quick-add draft) as a new flight and clears the draft."""
        def _apply(d: Destination) -> Destination:
            flights = options.add_flight_from_draft(d.flights, draft or d.flight_draft)
            return replace(reconciler.replace_flights(d, flights, self.settings), flight_draft=FlightDraft())

        return self.update_destination(destination_id, _apply)

    def remove_flight(self, destination_id: str, flight_id: str) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_flights(d, options.remove_option(d.flights, flight_id), self.settings),
        )

    def duplicate_flight(self, destination_id: str, flight_id: str) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_flights(d, options.duplicate_flight(d.flights, flight_id), self.settings),
        )

    def edit_flight(self, destination_id: str, flight_id: str, **changes: Any) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_flights(d, options.edit_flight(d.flights, flight_id, **changes), self.settings),
        )

    def import_flights(self, destination_id: str, text: str) -> List[BulkRow]:
        rows = parse_bulk_rows(text)
        imported = bulk_flights(rows)
        if imported:
            self.update_destination(
                destination_id,
                lambda d: reconciler.replace_flights(d, [*d.flights, *imported], self.settings),
            )
        return rows

    # ---- accommodations ----

    def set_accommodations(self, destination_id: str, accommodations) -> Destination:
        return self.update_destination(
            destination_id, lambda d: reconciler.replace_accommodations(d, accommodations, self.settings)
        )

    def set_accommodation_draft(self, destination_id: str, draft: AccommodationDraft) -> Destination:
        return self.update_destination(destination_id, lambda d: replace(d, accommodation_draft=draft))

    def add_accommodation(self, destination_id: str, draft: Optional[AccommodationDraft] = None) -> Destination:
        def _apply(d: Destination) -> Destination:
            accommodations = options.add_accommodation_from_draft(d.accommodations, draft or d.accommodation_draft)
            return replace(
                reconciler.replace_accommodations(d, accommodations, self.settings),
                accommodation_draft=AccommodationDraft(),
            )

        return self.update_destination(destination_id, _apply)

    def remove_accommodation(self, destination_id: str, accommodation_id: str) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_accommodations(
                d, options.remove_option(d.accommodations, accommodation_id), self.settings
            ),
        )

    def duplicate_accommodation(self, destination_id: str, accommodation_id: str) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_accommodations(
                d, options.duplicate_accommodation(d.accommodations, accommodation_id), self.settings
            ),
        )

    def edit_accommodation(self, destination_id: str, accommodation_id: str, **changes: Any) -> Destination:
        return self.update_destination(
            destination_id,
            lambda d: reconciler.replace_accommodations(
                d, options.edit_accommodation(d.accommodations, accommodation_id, **changes), self.settings
            ),
        )

    def import_accommodations(self, destination_id: str, text: str) -> List[BulkRow]:
        rows = parse_bulk_rows(text)
        imported = bulk_accommodations(rows)
        if imported:
            self.update_destination(
                destination_id,
                lambda d: reconciler.replace_accommodations(d, [*d.accommodations, *imported], self.settings),
            )
        return rows

    # ---- budget estimator ----

    def set_flight_assignment(self, destination_id: str, flight_id: str, count: int) -> Destination:
        return self.update_destination(destination_id, lambda d: reconciler.set_flight_assignment(d, flight_id, count))

    def select_accommodation(self, destination_id: str, accommodation_id: str) -> Destination:
        return self.update_destination(destination_id, lambda d: reconciler.select_accommodation(d, accommodation_id))

    def save_attempt(self, destination_id: str, name: str = reconciler.DEFAULT_ATTEMPT_NAME) -> Destination:
        return self.update_destination(destination_id, lambda d: reconciler.save_attempt(d, self.settings, name))

    def clear_attempt(self, destination_id: str) -> Destination:
        return self.update_destination(destination_id, reconciler.clear_attempt)

    def override_attempt(self, destination_id: str) -> Destination:
        return self.update_destination(destination_id, lambda d: reconciler.override_attempt(d, self.settings))

    def apply_attempt(self, destination_id: str) -> Destination:
        return self.update_destination(destination_id, reconciler.apply_attempt)

    # ---- file import / export ----

    def export_document(self) -> Dict[str, Any]:
        return self._document.to_dict()

    def import_document(self, payload: Any) -> bool:
        """Replaces the trip with an exported document. Invalid payloads leave state untouched."""
        document = normalize_trip_payload(payload, self.settings)
        if document is None:
            logger.warning("Import rejected: payload is not a valid trip document")
            return False
        self.update(lambda _: document)
        logger.info("Imported %d destinations", len(document.destinations))
        return True
