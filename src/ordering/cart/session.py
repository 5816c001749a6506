"""Session storage for carts.

The session layer itself lives outside the engine; this module only defines
the narrow interface the cart manager needs, plus an in-process
implementation for single-node deployments and tests.
"""

import copy
import threading
from collections.abc import Mapping
from typing import Any, Protocol


class SessionStore(Protocol):
    def load(self, session_id: str) -> Mapping[str, Any] | None: ...

    def save(self, session_id: str, data: Mapping[str, Any]) -> None: ...

    def discard(self, session_id: str) -> None: ...


class InMemorySessionStore:
    def __init__(self):
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def load(self, session_id: str) -> Mapping[str, Any] | None:
        with self._lock:
            data = self._data.get(session_id)
            return copy.deepcopy(data) if data is not None else None

    def save(self, session_id: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            self._data[session_id] = copy.deepcopy(dict(data))

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._data.pop(session_id, None)
