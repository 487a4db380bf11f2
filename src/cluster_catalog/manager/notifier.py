from __future__ import annotations

import threading
from typing import Callable, List, Optional, Protocol

from cluster_catalog.common.logger import get_logger
from cluster_catalog.sources.models import SourceSchema

logger = get_logger(__name__)


class ChangeListener(Protocol):
    """Receives ``(logical_name, schema_or_None)`` whenever a source changes."""

    def __call__(self, name: str, schema: Optional[SourceSchema]) -> None:
        ...


class ChangeNotifier:
    """
    Delivers source changes to subscribed listeners.

    Delivery is synchronous and at-least-once per change: every listener is
    called once for each ``notify``. A listener that raises is logged and
    skipped; the error never reaches the caller.
    """

    def __init__(self, listeners: Optional[List[ChangeListener]] = None):
        self._listeners: List[ChangeListener] = list(listeners or [])
        self._lock = threading.Lock()

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Adds a listener and returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def notify(self, name: str, schema: Optional[SourceSchema]) -> int:
        """Calls every listener. Returns how many completed without raising."""
        with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            try:
                listener(name, schema)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Change listener {listener!r} failed for source '{name}'",
                    extra={"source": name},
                )
        return delivered
