from __future__ import annotations
import copy
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

OnChange = Callable[[Any], None]
OnError = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class RemoteStoreError(Exception):
    """The remote document store could not complete a read or write."""


class RemoteTimeout(RemoteStoreError):
    """A remote operation did not finish before its deadline."""


def _split(path: str) -> List[str]:
    return [p for p in path.strip("/").split("/") if p]


def call_with_timeout(fn: Callable[[], Any], timeout: float) -> Any:
    """
    Runs a remote call with a hard deadline. A call that overruns is abandoned
    on its worker thread and surfaces as RemoteTimeout.
    """
    ex = ThreadPoolExecutor(max_workers=1)
    fut = ex.submit(fn)
    try:
        return fut.result(timeout=timeout)
    except FuturesTimeoutError as e:
        fut.cancel()
        raise RemoteTimeout(f"Remote call timed out after {timeout:g}s") from e
    finally:
        ex.shutdown(wait=False)


class FirebaseRemoteStore:
    """
    Reads and writes JSON values in a Firebase Realtime Database through its REST API.
    `read` returns None when nothing is stored at the path; `write` replaces the whole value.
    """

    def __init__(self, database_url: str, auth_token: Optional[str] = None, timeout: float = 8.0,
                 session: Optional[requests.Session] = None):
        if not database_url:
            raise ValueError("FIREBASE_DATABASE_URL is missing.")
        self.database_url = database_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def url_for(self, path: str) -> str:
        return f"{self.database_url}/{'/'.join(_split(path))}.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self.auth_token} if self.auth_token else {}

    def read(self, path: str) -> Any:
        try:
            res = self.session.get(self.url_for(path), params=self._params(), timeout=self.timeout)
            res.raise_for_status()
            return res.json()
        except requests.Timeout as e:
            raise RemoteTimeout(f"Timed out reading {path} after {self.timeout:g}s") from e
        except (requests.RequestException, ValueError) as e:
            raise RemoteStoreError(f"Failed to read {path}: {e}") from e

    def write(self, path: str, value: Any) -> None:
        try:
            res = self.session.put(self.url_for(path), params=self._params(), json=value, timeout=self.timeout)
            res.raise_for_status()
        except requests.Timeout as e:
            raise RemoteTimeout(f"Timed out writing {path} after {self.timeout:g}s") from e
        except requests.RequestException as e:
            raise RemoteStoreError(f"Failed to write {path}: {e}") from e

    def subscribe(self, path: str, on_change: OnChange, on_error: Optional[OnError] = None) -> Unsubscribe:
        """
        Follows the server-sent event stream for `path` on a daemon thread.
        A `put` at the root carries the full value; any other change triggers a fresh read.
        """
        stop = threading.Event()
        holder: Dict[str, requests.Response] = {}

        def _fail(err: Exception) -> None:
            if on_error and not stop.is_set():
                on_error(err)

        def _listen() -> None:
            try:
                res = self.session.get(
                    self.url_for(path),
                    params=self._params(),
                    headers={"Accept": "text/event-stream"},
                    stream=True,
                    timeout=(self.timeout, None),
                )
                res.raise_for_status()
                holder["response"] = res
                event = None
                for line in res.iter_lines(decode_unicode=True):
                    if stop.is_set():
                        break
                    if not line:
                        continue
                    if line.startswith("event:"):
                        event = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        self._dispatch(path, event, line[len("data:"):].strip(), on_change, _fail)
            except requests.Timeout:
                _fail(RemoteTimeout(f"Timed out subscribing to {path}"))
            except requests.RequestException as e:
                _fail(RemoteStoreError(f"Subscription to {path} failed: {e}"))

        thread = threading.Thread(target=_listen, name=f"firebase-stream-{path}", daemon=True)
        thread.start()

        def unsubscribe() -> None:
            stop.set()
            res = holder.get("response")
            if res is not None:
                res.close()

        return unsubscribe

    def _dispatch(self, path: str, event: Optional[str], raw: str, on_change: OnChange, on_error: OnError) -> None:
        if event in ("keep-alive", None):
            return
        if event in ("cancel", "auth_revoked"):
            on_error(RemoteStoreError(f"Subscription to {path} ended by server: {event}"))
            return
        try:
            message = json.loads(raw)
        except ValueError:
            logger.warning("Skipping malformed stream message for %s", path)
            return
        if event == "put" and isinstance(message, dict) and message.get("path") == "/":
            on_change(message.get("data"))
            return
        try:
            on_change(self.read(path))
        except RemoteStoreError as e:
            on_error(e)


class InMemoryRemoteStore:
    """
    Remote document capability backed by a nested dict; subscribers are notified
    synchronously on every write at or below their path.
    """

    def __init__(self):
        self._root: Dict[str, Any] = {}
        self._subscribers: Dict[int, tuple] = {}
        self._next_id = 0
        self.reads: List[str] = []
        self.writes: List[str] = []

    def read(self, path: str) -> Any:
        self.reads.append(path)
        node: Any = self._root
        for part in _split(path):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def write(self, path: str, value: Any) -> None:
        parts = _split(path)
        if not parts:
            raise RemoteStoreError("Refusing to replace the database root.")
        self.writes.append(path)
        node = self._root
        for part in parts[:-1]:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        if value is None:
            node.pop(parts[-1], None)
        else:
            node[parts[-1]] = copy.deepcopy(value)
        for sub_path, callback in list(self._subscribers.values()):
            sub_parts = _split(sub_path)
            overlap = min(len(parts), len(sub_parts))
            if parts[:overlap] == sub_parts[:overlap]:
                callback(self.read(sub_path))

    def subscribe(self, path: str, on_change: OnChange, on_error: Optional[OnError] = None) -> Unsubscribe:
        sub_id = self._next_id
        self._next_id += 1
        self._subscribers[sub_id] = (path, on_change)

        def unsubscribe() -> None:
            self._subscribers.pop(sub_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
