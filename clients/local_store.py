from __future__ import annotations
import copy
import json
import logging
import os
import threading
from typing import Any, Dict

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    """Key-value capability kept in process memory. Values are deep-copied in and out."""

    def __init__(self, initial: Dict[str, Any] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)


class JsonFileKeyValueStore:
    """
    Key-value capability persisted to a single JSON file so state survives a restart.
    An unreadable or corrupt file is treated as empty.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)
