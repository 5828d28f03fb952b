from __future__ import annotations

from collections import defaultdict
import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

MODIFY = "modify"  # (document_id)
RENAME = "rename"  # (document_id, old_id)
DELETE = "delete"  # (document_id)
RESOLVED = "resolved"  # ()

EVENT_NAMES = (MODIFY, RENAME, DELETE, RESOLVED)


class Subscription:
    """Handle returned by `ChangeEvents.on`; `close()` unregisters the listener."""

    def __init__(self, hub: "ChangeEvents", name: str, callback: Callable[..., Any]):
        self._hub = hub
        self.name = name
        self.callback = callback
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self._hub._remove(self)
            self.closed = True


class ChangeEvents:
    """Change notification source for a document collection."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Subscription]] = defaultdict(list)

    def on(self, name: str, callback: Callable[..., Any]) -> Subscription:
        if name not in EVENT_NAMES:
            raise ValueError(f"Unknown event {name!r}; expected one of {', '.join(EVENT_NAMES)}")
        sub = Subscription(self, name, callback)
        with self._lock:
            self._listeners[name].append(sub)
        return sub

    def listener_count(self, name: str | None = None) -> int:
        with self._lock:
            if name is not None:
                return len(self._listeners.get(name, []))
            return sum(len(v) for v in self._listeners.values())

    def emit(self, name: str, *args: Any) -> None:
        with self._lock:
            subs = list(self._listeners.get(name, []))
        for sub in subs:
            try:
                sub.callback(*args)
            except Exception:
                logger.exception("Listener for %s failed", name)

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._listeners.get(sub.name, [])
            if sub in subs:
                subs.remove(sub)


class SubscriptionGroup:
    """Collects subscriptions so they can all be released together."""

    def __init__(self):
        self._subs: List[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._subs.append(sub)
        return sub

    def __len__(self) -> int:
        return len(self._subs)

    def close(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.close()

    def __enter__(self) -> "SubscriptionGroup":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
