"""Per-caller pending confirmations for destructive commands."""

from __future__ import annotations

import threading


class ConfirmationSessions:
    """Maps a caller to the task id it has asked to delete but not yet confirmed."""

    def __init__(self) -> None:
        self._pending: dict[str, str] = {}
        self._lock = threading.Lock()

    def pending(self, caller: str) -> str | None:
        with self._lock:
            return self._pending.get(caller)

    def request(self, caller: str, task_id: str) -> None:
        with self._lock:
            self._pending[caller] = task_id

    def confirm(self, caller: str, task_id: str) -> bool:
        """True (and forget the request) when the caller already asked for this exact id."""
        with self._lock:
            if self._pending.get(caller) != task_id:
                return False
            del self._pending[caller]
            return True

    def clear(self, caller: str) -> None:
        with self._lock:
            self._pending.pop(caller, None)
