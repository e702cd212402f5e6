import pytest

from clients.local_store import InMemoryKeyValueStore
from clients.remote_store import InMemoryRemoteStore, RemoteStoreError, RemoteTimeout
from planner.store import PlannerStore
from planner.trip_sync import (
    LOCAL_PUSHED_AT_KEY,
    REMOTE_UPDATED_AT_KEY,
    TRIP_CODE_KEY,
    SyncStatusKind,
    TripSyncCoordinator,
)

from factories import destination_dict, flight_dict, without_empty_containers


class FakeClock:
    def __init__(self, start=1_000):
        self.value = start

    def __call__(self):
        self.value += 1
        return self.value


class FirebaseLikeRemote(InMemoryRemoteStore):
    def write(self, path, value):
        super().write(path, without_empty_containers(value))


class FailingRemote:
    def __init__(self, error):
        self.error = error

    def read(self, path):
        raise self.error

    def write(self, path, value):
        raise self.error


def _remote_trip(remote, code, updated_at, name="Rome", updated_by="peer"):
    remote.write(f"trips/{code}", {
        "destinations": [destination_dict("r1", name=name, flights=[flight_dict("f1", 80)])],
        "settings": {"totalBudget": 3000, "peopleCount": 4},
        "meta": {"updatedAt": updated_at, "updatedBy": updated_by},
    })


@pytest.fixture
def sync(store, kv, remote):
    return TripSyncCoordinator(store, kv, remote, client_id="me", clock=FakeClock())


def test_without_remote_everything_is_unavailable(store, kv):
    coordinator = TripSyncCoordinator(store, kv)
    assert not coordinator.available
    for result in (coordinator.pull("ABCD1234"), coordinator.push("ABCD1234"), coordinator.check_remote("ABCD1234")):
        assert result.kind == SyncStatusKind.SYNC_UNAVAILABLE
        assert not result.ok


def test_short_code_is_rejected_before_any_read(sync, remote):
    result = sync.pull("ab-c")
    assert result.kind == SyncStatusKind.INVALID_CODE
    assert remote.reads == []


def test_pull_missing_trip(sync):
    assert sync.pull("abcd").kind == SyncStatusKind.NOT_FOUND


def test_pull_replaces_local_document_and_records_marker(sync, store, kv, remote):
    _remote_trip(remote, "ROMA2026", 500)

    result = sync.pull(" roma-2026 ")

    assert result.kind == SyncStatusKind.PULLED
    assert result.code == "ROMA2026"
    assert [d.name for d in store.destinations] == ["Rome"]
    assert store.settings.people_count == 4
    assert sync.last_known_remote("ROMA2026") == 500
    assert kv.get(TRIP_CODE_KEY) == "ROMA2026"
    assert sync.last_trip_code == "ROMA2026"


def test_pull_of_invalid_payload_keeps_local_state(sync, store, remote):
    store.add_destination("Lisbon", 38.72, -9.14)
    remote.write("trips/BADTRIP1", {"destinations": [{"id": 7}], "meta": {"updatedAt": 900}})

    result = sync.pull("BADTRIP1")

    assert result.kind == SyncStatusKind.INVALID_REMOTE_DATA
    assert [d.name for d in store.destinations] == ["Lisbon"]
    assert sync.last_known_remote("BADTRIP1") is None


def test_push_writes_document_with_meta(sync, store, kv, remote):
    store.add_destination("Lisbon", 38.72, -9.14)

    result = sync.push("NEWTRIP1")

    assert result.kind == SyncStatusKind.PUSHED
    stored = remote.read("trips/NEWTRIP1")
    assert stored["destinations"][0]["name"] == "Lisbon"
    assert stored["meta"] == {"updatedAt": result.remote_updated_at, "updatedBy": "me"}
    assert kv.get(REMOTE_UPDATED_AT_KEY) == {"NEWTRIP1": result.remote_updated_at}
    assert kv.get(LOCAL_PUSHED_AT_KEY) == {"NEWTRIP1": result.remote_updated_at}


def test_declined_stale_push_leaves_remote_untouched(sync, store, remote):
    _remote_trip(remote, "ROMA2026", 500)
    sync.pull("ROMA2026")
    _remote_trip(remote, "ROMA2026", 800, name="Rome, revised")
    before = remote.read("trips/ROMA2026")
    store.add_destination("Lisbon", 38.72, -9.14)
    asked = []

    result = sync.push("ROMA2026", confirm_override=lambda remote_at, known: asked.append((remote_at, known)) or False)

    assert result.kind == SyncStatusKind.STALE_REMOTE_CONFLICT
    assert result.remote_updated_at == 800
    assert asked == [(800, 500)]
    assert remote.read("trips/ROMA2026") == before


def test_stale_push_without_callback_is_refused(sync, remote):
    _remote_trip(remote, "ROMA2026", 500)
    writes_before = list(remote.writes)
    assert sync.push("ROMA2026").kind == SyncStatusKind.STALE_REMOTE_CONFLICT
    assert remote.writes == writes_before


def test_confirmed_stale_push_overwrites(sync, store, remote):
    _remote_trip(remote, "ROMA2026", 500)
    store.add_destination("Lisbon", 38.72, -9.14)

    result = sync.push("ROMA2026", confirm_override=lambda remote_at, known: True)

    assert result.kind == SyncStatusKind.PUSHED
    assert [d["name"] for d in remote.read("trips/ROMA2026")["destinations"]] == ["Lisbon"]
    assert sync.last_known_remote("ROMA2026") == result.remote_updated_at


def test_push_after_own_push_needs_no_confirmation(sync, store):
    store.add_destination("Lisbon", 38.72, -9.14)
    assert sync.push("MYTRIP01").kind == SyncStatusKind.PUSHED
    store.add_destination("Porto", 41.15, -8.61)
    assert sync.push("MYTRIP01").kind == SyncStatusKind.PUSHED


def test_check_remote_reports_peer_changes(sync, remote):
    _remote_trip(remote, "ROMA2026", 500)
    sync.pull("ROMA2026")
    assert sync.check_remote("ROMA2026").kind == SyncStatusKind.UP_TO_DATE

    _remote_trip(remote, "ROMA2026", 700)
    result = sync.check_remote("ROMA2026")
    assert result.kind == SyncStatusKind.REMOTE_CHANGED
    assert result.remote_updated_at == 700
    assert remote.reads[-1] == "trips/ROMA2026/meta/updatedAt"


def test_check_remote_on_missing_trip_is_up_to_date(sync):
    result = sync.check_remote("NOTHING1")
    assert result.kind == SyncStatusKind.UP_TO_DATE
    assert result.remote_updated_at is None


@pytest.mark.parametrize("error, kind", [
    (RemoteTimeout("slow"), SyncStatusKind.CONNECT_TIMEOUT),
    (RemoteStoreError("permission denied"), SyncStatusKind.TRANSPORT_FAILURE),
])
def test_transport_errors_become_results(store, kv, error, kind):
    coordinator = TripSyncCoordinator(store, kv, FailingRemote(error), client_id="me")
    for result in (coordinator.pull("ABCD"), coordinator.push("ABCD"), coordinator.check_remote("ABCD")):
        assert result.kind == kind
        assert not result.ok
    assert not coordinator.busy


def test_timeout_message_names_the_deadline(store, kv):
    coordinator = TripSyncCoordinator(store, kv, FailingRemote(RemoteTimeout("slow")), client_id="me", timeout=8)
    assert "8s" in coordinator.pull("ABCD").message


def test_overlapping_operations_are_refused(sync, remote):
    _remote_trip(remote, "ROMA2026", 500)
    nested = []

    def confirm(remote_at, known):
        nested.append(sync.pull("ROMA2026"))
        return False

    sync.push("ROMA2026", confirm_override=confirm)

    assert [r.kind for r in nested] == [SyncStatusKind.BUSY]
    assert not sync.busy


def test_client_id_is_created_once(store, kv, remote):
    first = TripSyncCoordinator(store, kv, remote)
    second = TripSyncCoordinator(store, kv, remote)
    assert first.client_id == second.client_id


def test_pull_accepts_destinations_stored_without_empty_collections():
    remote = FirebaseLikeRemote()
    kv_a, kv_b = InMemoryKeyValueStore(), InMemoryKeyValueStore()
    store_a, store_b = PlannerStore(kv_a), PlannerStore(kv_b)
    store_a.add_destination("Lisbon", 38.72, -9.14)

    assert TripSyncCoordinator(store_a, kv_a, remote, client_id="a").push("TRIP01").kind == SyncStatusKind.PUSHED
    assert "flights" not in remote.read("trips/TRIP01")["destinations"][0]

    result = TripSyncCoordinator(store_b, kv_b, remote, client_id="b").pull("TRIP01")

    assert result.kind == SyncStatusKind.PULLED
    lisbon = store_b.destinations[0]
    assert lisbon.name == "Lisbon"
    assert lisbon.flights == []
    assert lisbon.accommodations == []


def test_pull_accepts_synced_trip_without_destinations():
    remote = FirebaseLikeRemote()
    kv_a, kv_b = InMemoryKeyValueStore(), InMemoryKeyValueStore()
    store_b = PlannerStore(kv_b)
    store_b.add_destination("Porto", 41.15, -8.61)

    TripSyncCoordinator(PlannerStore(kv_a), kv_a, remote, client_id="a").push("TRIP02")
    result = TripSyncCoordinator(store_b, kv_b, remote, client_id="b").pull("TRIP02")

    assert result.kind == SyncStatusKind.PULLED
    assert store_b.destinations == []
