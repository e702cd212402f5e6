from __future__ import annotations
import re
import secrets
import uuid

TRIP_CODE_LENGTH = 8
MANUAL_MIN_LENGTH = 4
LIVE_MIN_LENGTH = 6
# no I/O/0/1 so codes survive being read aloud
TRIP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

CLIENT_ID_KEY = "client-id"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize_trip_code(value: str) -> str:
    return _NON_ALNUM.sub("", (value or "").upper())[:TRIP_CODE_LENGTH]


def is_valid_trip_code(code: str, min_length: int = MANUAL_MIN_LENGTH) -> bool:
    return len(code) >= min_length


def generate_trip_code() -> str:
    return "".join(secrets.choice(TRIP_CODE_ALPHABET) for _ in range(TRIP_CODE_LENGTH))


def trip_path(code: str) -> str:
    return f"trips/{code}"


def get_or_create_client_id(kv_store) -> str:
    """Stable per-installation id, used to tell our own remote writes from a peer's."""
    existing = kv_store.get(CLIENT_ID_KEY)
    if isinstance(existing, str) and existing:
        return existing
    client_id = str(uuid.uuid4())
    kv_store.set(CLIENT_ID_KEY, client_id)
    return client_id
