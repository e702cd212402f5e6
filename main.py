# main.py
from __future__ import annotations
import logging

from clients.local_store import JsonFileKeyValueStore
from clients.remote_store import FirebaseRemoteStore
from models.flight import FlightDraft
from models.accommodation import AccommodationDraft
from planner.overview import summarize_destination
from planner.staleness import StalenessWatcher
from planner.store import PlannerStore
from planner.trip_sync import TripSyncCoordinator
from utils.config import PlannerConfig

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = PlannerConfig.from_env()

    kv = JsonFileKeyValueStore(config.state_path)
    store = PlannerStore(kv)

    if not store.destinations:
        lisbon = store.add_destination("Lisbon", 38.7223, -9.1393)
        store.add_flight(lisbon.id, FlightDraft(link="https://example.com/f/1", description="DUB-LIS direct",
                                                start_date="2026-05-01", end_date="2026-05-05", price_per_person=180))
        store.add_accommodation(lisbon.id, AccommodationDraft(link="https://example.com/s/1", description="Alfama flat",
                                                              total_price=900, start_date="2026-05-01", end_date="2026-05-05"))
        lisbon = store.get_destination(lisbon.id)
        store.set_flight_assignment(lisbon.id, lisbon.flights[0].id, store.settings.people_count)
        store.select_accommodation(lisbon.id, lisbon.accommodations[0].id)

    for destination in store.destinations:
        print(f"{destination.name} ({destination.latitude:.4f}, {destination.longitude:.4f})")
        print(summarize_destination(destination, store.settings))

    if config.remote_configured:
        remote = FirebaseRemoteStore(config.firebase_database_url, config.firebase_auth_token, config.sync_timeout_seconds)
        sync = TripSyncCoordinator(store, kv, remote, timeout=config.sync_timeout_seconds)
        if sync.last_trip_code:
            watcher = StalenessWatcher(sync, sync.last_trip_code, lambda r: print(r.message),
                                       interval=config.poll_interval_seconds)
            watcher.check_now()
