from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Optional

from clients.remote_store import RemoteStoreError, call_with_timeout
from models.trip import TripDocument
from planner.normalizers import normalize_trip_payload
from planner.reconciler import now_ms
from planner.store import SOURCE_REMOTE, PlannerStore
from planner.trip_code import (
    LIVE_MIN_LENGTH,
    generate_trip_code,
    get_or_create_client_id,
    is_valid_trip_code,
    normalize_trip_code,
    trip_path,
)
from planner.trip_sync import DEFAULT_TIMEOUT_SECONDS, SyncResult, SyncStatusKind, transport_result

logger = logging.getLogger(__name__)

LIVE_TRIP_CODE_KEY = "live-trip-code"
PUSH_DEBOUNCE_SECONDS = 0.35


class LiveTripSession:
    """
    Keeps the local trip continuously mirrored to `trips/{CODE}`.

    Remote changes are applied as they arrive, local edits are pushed after a short
    debounce. Our own writes come back through the subscription too; they are
    recognised by client id plus write timestamp and ignored.
    """

    def __init__(
        self,
        store: PlannerStore,
        kv_store,
        remote=None,
        client_id: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        debounce: float = PUSH_DEBOUNCE_SECONDS,
        on_status: Optional[Callable[[SyncResult], None]] = None,
    ):
        self.store = store
        self.kv_store = kv_store
        self.remote = remote
        self.client_id = client_id or get_or_create_client_id(kv_store)
        self.clock = clock
        self.timeout = timeout
        self.debounce = debounce
        self.on_status = on_status
        self.active_code: Optional[str] = None
        self.status = SyncResult(SyncStatusKind.LEFT, "Live share is off. Join a trip code to collaborate.")
        if remote is None:
            self.status = SyncResult(SyncStatusKind.SYNC_UNAVAILABLE, "Live share disabled. Set FIREBASE_DATABASE_URL to enable it.")
        self._lock = threading.RLock()
        self._last_local_write_at: Optional[int] = None
        self._unsubscribe_remote: Optional[Callable[[], None]] = None
        self._unsubscribe_store: Optional[Callable[[], None]] = None
        self._pending: Optional[threading.Timer] = None

    @property
    def joined(self) -> bool:
        return self.active_code is not None

    @property
    def remembered_code(self) -> str:
        code = self.kv_store.get(LIVE_TRIP_CODE_KEY)
        return code if isinstance(code, str) else ""

    def _set_status(self, result: SyncResult) -> SyncResult:
        self.status = result
        if self.on_status:
            self.on_status(result)
        return result

    # ---- join / leave ----

    def join(self, code_input: str = "") -> SyncResult:
        """Joins the trip under `code_input`, or starts a new one with a generated code when blank."""
        if self.remote is None:
            return self._set_status(SyncResult(
                SyncStatusKind.SYNC_UNAVAILABLE,
                "Live share is not configured. Set FIREBASE_DATABASE_URL to enable it.",
            ))

        code = normalize_trip_code(code_input) or generate_trip_code()
        if not is_valid_trip_code(code, LIVE_MIN_LENGTH):
            return self._set_status(SyncResult(
                SyncStatusKind.INVALID_CODE, f"Trip code must be at least {LIVE_MIN_LENGTH} characters.", code
            ))

        if self.joined:
            self.leave()

        try:
            payload = call_with_timeout(lambda: self.remote.read(trip_path(code)), self.timeout)
            if payload is not None:
                document = normalize_trip_payload(payload, self.store.settings)
                if document is None:
                    return self._set_status(SyncResult(
                        SyncStatusKind.INVALID_REMOTE_DATA, "Unable to join. Trip payload is invalid.", code
                    ))
                self.store.replace_document(document, source=SOURCE_REMOTE)
                result = SyncResult(SyncStatusKind.JOINED, f"Joined trip {code}.", code, document.meta.updated_at)
            else:
                updated_at = call_with_timeout(lambda: self._write_snapshot(code), self.timeout)
                result = SyncResult(SyncStatusKind.CREATED, f"Created trip {code}. Share this code.", code, updated_at)
        except RemoteStoreError as e:
            logger.warning("Joining trip %s failed: %s", code, e)
            return self._set_status(transport_result(e, code, self.timeout))

        with self._lock:
            self.active_code = code
            self.kv_store.set(LIVE_TRIP_CODE_KEY, code)
            self._unsubscribe_store = self.store.subscribe(self._on_local_change)
            self._unsubscribe_remote = self.remote.subscribe(trip_path(code), self._on_remote_change, self._on_remote_error)
        logger.info("Live sync started for trip %s", code)
        return self._set_status(result)

    def leave(self) -> SyncResult:
        with self._lock:
            self._cancel_pending()
            if self._unsubscribe_remote:
                self._unsubscribe_remote()
            if self._unsubscribe_store:
                self._unsubscribe_store()
            self._unsubscribe_remote = None
            self._unsubscribe_store = None
            self.active_code = None
            self.kv_store.set(LIVE_TRIP_CODE_KEY, None)
        return self._set_status(SyncResult(SyncStatusKind.LEFT, "Live share is off."))

    # ---- remote -> local ----

    def _is_self_echo(self, document: TripDocument) -> bool:
        # echoes of older writes can still arrive after a newer one
        meta = document.meta
        last_write = self._last_local_write_at
        return (
            meta.updated_by == self.client_id
            and meta.updated_at is not None
            and last_write is not None
            and meta.updated_at <= last_write
        )

    def _on_remote_change(self, value: Any) -> None:
        code = self.active_code
        if code is None or value is None:
            return
        document = normalize_trip_payload(value, self.store.settings)
        if document is None:
            self._set_status(SyncResult(SyncStatusKind.INVALID_REMOTE_DATA, f"Trip {code} contains invalid data.", code))
            return
        if self._is_self_echo(document):
            return
        self.store.replace_document(document, source=SOURCE_REMOTE)
        self._set_status(SyncResult(
            SyncStatusKind.REMOTE_APPLIED, f"Live sync active on trip {code}.", code, document.meta.updated_at
        ))

    def _on_remote_error(self, error: Exception) -> None:
        logger.warning("Live sync connection lost: %s", error)
        self._set_status(SyncResult(
            SyncStatusKind.TRANSPORT_FAILURE,
            "Lost connection to the trip database. Check your project config and rules.",
            self.active_code or "",
        ))

    # ---- local -> remote ----

    def _on_local_change(self, document: TripDocument, source: str) -> None:
        # documents that came from the remote must not be echoed back
        if source == SOURCE_REMOTE or not self.joined:
            return
        with self._lock:
            self._cancel_pending()
            if self.debounce <= 0:
                self.flush()
                return
            self._pending = threading.Timer(self.debounce, self.flush)
            self._pending.daemon = True
            self._pending.start()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def flush(self) -> Optional[SyncResult]:
        """Pushes the current document now instead of waiting for the debounce."""
        with self._lock:
            self._cancel_pending()
            code = self.active_code
        if code is None:
            return None
        try:
            call_with_timeout(lambda: self._write_snapshot(code), self.timeout)
        except RemoteStoreError as e:
            logger.warning("Live push for trip %s failed: %s", code, e)
            return self._set_status(SyncResult(SyncStatusKind.TRANSPORT_FAILURE, "Failed to sync your latest changes.", code))
        return None

    def _write_snapshot(self, code: str) -> int:
        updated_at = self.clock()
        self._last_local_write_at = updated_at
        self.remote.write(trip_path(code), self.store.document.to_dict(updated_at=updated_at, updated_by=self.client_id))
        return updated_at
