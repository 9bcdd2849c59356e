from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[bool], None]


class ConnectivityMonitor:
    """The device's online/offline signal.

    Listeners are called only on transitions, after the new state is visible.
    """

    def __init__(self, *, online: bool = True):
        self._online = bool(online)
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_online(self, online: bool) -> bool:
        """Record the new state; returns True when it changed."""
        online = bool(online)
        with self._lock:
            if online == self._online:
                return False
            self._online = online
            listeners = list(self._listeners)
        logger.info("Device is now %s", "online" if online else "offline")
        for listener in listeners:
            listener(online)
        return True
