from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_STATE_PATH = os.path.join(os.path.expanduser("~"), ".trip_planner_state.json")


@dataclass
class PlannerConfig:
    firebase_database_url: str = ""
    firebase_auth_token: Optional[str] = None
    state_path: str = DEFAULT_STATE_PATH
    sync_timeout_seconds: float = 8.0
    poll_interval_seconds: float = 30.0

    @property
    def remote_configured(self) -> bool:
        return bool(self.firebase_database_url)

    @classmethod
    def from_env(cls) -> "PlannerConfig":
        load_dotenv()
        return cls(
            firebase_database_url=os.getenv("FIREBASE_DATABASE_URL", "").rstrip("/"),
            firebase_auth_token=os.getenv("FIREBASE_AUTH_TOKEN") or None,
            state_path=os.getenv("PLANNER_STATE_PATH", DEFAULT_STATE_PATH),
            sync_timeout_seconds=_float_env("TRIP_SYNC_TIMEOUT_SECONDS", 8.0),
            poll_interval_seconds=_float_env("TRIP_POLL_INTERVAL_SECONDS", 30.0),
        )


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default
