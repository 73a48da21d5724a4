"""Per-run context store."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any

LAST_STEP_SUCCESS = "lastStepSuccess"


def step_result_key(step_id: str) -> str:
    return f"step_{step_id}_result"


def step_output_key(step_id: str) -> str:
    return f"{step_id}_output"


class ContextStore:
    """Mutable key/value bag threaded through one workflow run.

    Every run owns its own store; nothing is shared between runs. There is no
    history: a later ``put`` overwrites the earlier value under the same key.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._lock = threading.Lock()
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._data)
