from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..core.enums import AttendanceAction
from .session import AttendanceSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str, AttendanceAction], AttendanceSession]


class SessionRegistry:
    """Holds the device's single open attendance session.

    The camera is exclusive, so opening a session closes whichever one was
    open before, even if it belongs to another user.
    """

    def __init__(self, factory: SessionFactory):
        self._factory = factory
        self._lock = threading.Lock()
        self._current: Optional[AttendanceSession] = None

    def open(self, user_id: str, action: AttendanceAction) -> AttendanceSession:
        with self._lock:
            previous, self._current = self._current, None
        if previous is not None:
            previous.close()

        session = self._factory(user_id, action)
        session.start()
        with self._lock:
            self._current = session
        return session

    def get(self, user_id: str) -> Optional[AttendanceSession]:
        with self._lock:
            session = self._current
        if session is None or session.user_id != user_id:
            return None
        if session.closed:
            self.close(user_id)
            return None
        return session

    def close(self, user_id: str) -> bool:
        with self._lock:
            session = self._current
            if session is None or session.user_id != user_id:
                return False
            self._current = None
        session.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            session, self._current = self._current, None
        if session is not None:
            session.close()
