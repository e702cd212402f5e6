from __future__ import annotations
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from clients.remote_store import RemoteStoreError, RemoteTimeout, call_with_timeout
from planner.normalizers import normalize_trip_payload
from planner.reconciler import now_ms
from planner.store import PlannerStore
from planner.trip_code import (
    MANUAL_MIN_LENGTH,
    get_or_create_client_id,
    is_valid_trip_code,
    normalize_trip_code,
    trip_path,
)
from utils.money import is_finite_number

logger = logging.getLogger(__name__)

TRIP_CODE_KEY = "trip-code"
REMOTE_UPDATED_AT_KEY = "trip-remote-updated-at"
LOCAL_PUSHED_AT_KEY = "trip-local-pushed-at"

DEFAULT_TIMEOUT_SECONDS = 8.0

# (remote_updated_at, last_known_remote) -> True to overwrite the newer remote copy
ConfirmOverride = Callable[[int, Optional[int]], bool]


class SyncStatusKind(str, enum.Enum):
    PULLED = "pulled"
    PUSHED = "pushed"
    NOT_FOUND = "not_found"
    UP_TO_DATE = "up_to_date"
    REMOTE_CHANGED = "remote_changed"
    JOINED = "joined"
    CREATED = "created"
    REMOTE_APPLIED = "remote_applied"
    LEFT = "left"
    INVALID_CODE = "invalid_code"
    SYNC_UNAVAILABLE = "sync_unavailable"
    INVALID_REMOTE_DATA = "invalid_remote_data"
    STALE_REMOTE_CONFLICT = "stale_remote_conflict"
    CONNECT_TIMEOUT = "connect_timeout"
    TRANSPORT_FAILURE = "transport_failure"
    BUSY = "busy"


_FAILURES = {
    SyncStatusKind.INVALID_CODE,
    SyncStatusKind.SYNC_UNAVAILABLE,
    SyncStatusKind.INVALID_REMOTE_DATA,
    SyncStatusKind.STALE_REMOTE_CONFLICT,
    SyncStatusKind.CONNECT_TIMEOUT,
    SyncStatusKind.TRANSPORT_FAILURE,
    SyncStatusKind.BUSY,
}


@dataclass
class SyncResult:
    kind: SyncStatusKind
    message: str
    code: str = ""
    remote_updated_at: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.kind not in _FAILURES


def transport_result(error: RemoteStoreError, code: str, timeout: float) -> SyncResult:
    if isinstance(error, RemoteTimeout):
        return SyncResult(
            SyncStatusKind.CONNECT_TIMEOUT,
            f"Connection timed out after {round(timeout)}s. Check the database URL and rules, then try again.",
            code,
        )
    return SyncResult(SyncStatusKind.TRANSPORT_FAILURE, f"Sync failed: {error}", code)


class TripSyncCoordinator:
    """
    Manual pull/push of the whole trip document against `trips/{CODE}`.

    Conflicts are last-write-wins: a push that would overwrite a remote copy newer
    than the last one this client saw needs an explicit `confirm_override`.
    Operations always return a SyncResult; they never raise.
    """

    def __init__(
        self,
        store: PlannerStore,
        kv_store,
        remote=None,
        client_id: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.store = store
        self.kv_store = kv_store
        self.remote = remote
        self.client_id = client_id or get_or_create_client_id(kv_store)
        self.clock = clock
        self.timeout = timeout
        self._busy = threading.Lock()

    @property
    def available(self) -> bool:
        return self.remote is not None

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @property
    def last_trip_code(self) -> str:
        code = self.kv_store.get(TRIP_CODE_KEY)
        return code if isinstance(code, str) else ""

    def last_known_remote(self, code: str) -> Optional[int]:
        return self._markers(REMOTE_UPDATED_AT_KEY).get(code)

    def last_local_push(self, code: str) -> Optional[int]:
        return self._markers(LOCAL_PUSHED_AT_KEY).get(code)

    def _markers(self, key: str) -> Dict[str, int]:
        raw = self.kv_store.get(key, {})
        if not isinstance(raw, dict):
            return {}
        return {k: int(v) for k, v in raw.items() if is_finite_number(v)}

    def _record(self, key: str, code: str, value: int) -> None:
        markers = self._markers(key)
        markers[code] = value
        self.kv_store.set(key, markers)

    def _remote_call(self, fn: Callable[[], Any]) -> Any:
        return call_with_timeout(fn, self.timeout)

    def _precheck(self, code_input: str):
        if not self.available:
            return "", SyncResult(
                SyncStatusKind.SYNC_UNAVAILABLE,
                "Trip sync is not configured. Set FIREBASE_DATABASE_URL to enable it.",
            )
        code = normalize_trip_code(code_input)
        if not is_valid_trip_code(code, MANUAL_MIN_LENGTH):
            return code, SyncResult(
                SyncStatusKind.INVALID_CODE,
                f"Trip code must be at least {MANUAL_MIN_LENGTH} characters.",
                code,
            )
        return code, None

    def _exclusive(self, code_input: str, operation: Callable[[str], SyncResult]) -> SyncResult:
        code, failure = self._precheck(code_input)
        if failure:
            return failure
        if not self._busy.acquire(blocking=False):
            return SyncResult(SyncStatusKind.BUSY, "Another sync is already running.", code)
        try:
            return operation(code)
        except RemoteStoreError as e:
            logger.warning("Trip %s sync failed: %s", code, e)
            return transport_result(e, code, self.timeout)
        finally:
            self._busy.release()

    # ---- public operations ----

    def pull(self, code_input: str) -> SyncResult:
        return self._exclusive(code_input, self._pull)

    def push(self, code_input: str, confirm_override: Optional[ConfirmOverride] = None) -> SyncResult:
        return self._exclusive(code_input, lambda code: self._push(code, confirm_override))

    def check_remote(self, code_input: str) -> SyncResult:
        """Reads only the remote `updatedAt` to tell whether a peer has pushed since we last synced."""
        code, failure = self._precheck(code_input)
        if failure:
            return failure
        try:
            remote_updated_at = self._read_updated_at(code)
        except RemoteStoreError as e:
            return transport_result(e, code, self.timeout)

        last_known = self.last_known_remote(code)
        if remote_updated_at is not None and (last_known is None or remote_updated_at > last_known):
            return SyncResult(SyncStatusKind.REMOTE_CHANGED, f"Trip {code} has changed remotely.", code, remote_updated_at)
        return SyncResult(SyncStatusKind.UP_TO_DATE, f"Trip {code} is up to date.", code, remote_updated_at)

    # ---- internals ----

    def _read_updated_at(self, code: str) -> Optional[int]:
        value = self._remote_call(lambda: self.remote.read(f"{trip_path(code)}/meta/updatedAt"))
        return int(value) if is_finite_number(value) else None

    def _pull(self, code: str) -> SyncResult:
        payload = self._remote_call(lambda: self.remote.read(trip_path(code)))
        if payload is None:
            return SyncResult(SyncStatusKind.NOT_FOUND, f"No trip found for code {code}.", code)

        document = normalize_trip_payload(payload, self.store.settings)
        if document is None:
            logger.warning("Trip %s holds invalid data; local state kept", code)
            return SyncResult(SyncStatusKind.INVALID_REMOTE_DATA, f"Trip {code} contains invalid data.", code)

        self.store.replace_document(document)
        self.kv_store.set(TRIP_CODE_KEY, code)
        if document.meta.updated_at is not None:
            self._record(REMOTE_UPDATED_AT_KEY, code, document.meta.updated_at)
        logger.info("Pulled trip %s (%d destinations)", code, len(document.destinations))
        return SyncResult(
            SyncStatusKind.PULLED,
            f"Loaded trip {code}.",
            code,
            document.meta.updated_at,
        )

    def _push(self, code: str, confirm_override: Optional[ConfirmOverride]) -> SyncResult:
        remote_updated_at = self._read_updated_at(code)
        last_known = self.last_known_remote(code)
        if remote_updated_at is not None and (last_known is None or remote_updated_at > last_known):
            if confirm_override is None or not confirm_override(remote_updated_at, last_known):
                return SyncResult(
                    SyncStatusKind.STALE_REMOTE_CONFLICT,
                    f"Trip {code} was changed by someone else. Pull first or confirm the overwrite.",
                    code,
                    remote_updated_at,
                )
            logger.info("Overwriting newer remote copy of trip %s", code)

        updated_at = self.clock()
        payload = self.store.document.to_dict(updated_at=updated_at, updated_by=self.client_id)
        self._remote_call(lambda: self.remote.write(trip_path(code), payload))

        self.kv_store.set(TRIP_CODE_KEY, code)
        self._record(REMOTE_UPDATED_AT_KEY, code, updated_at)
        self._record(LOCAL_PUSHED_AT_KEY, code, updated_at)
        return SyncResult(SyncStatusKind.PUSHED, f"Saved trip {code}.", code, updated_at)
