from __future__ import annotations

import json
import logging
import time
from typing import Callable

from ..core.constants import DEFAULT_SYNC_RETRIES, OFFLINE_QUEUE_KEY
from ..core.exceptions import SyncError
from .model import OfflineQueueEntry
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


class OfflineQueue:
    """FIFO log of attendance actions waiting for connectivity.

    The whole queue is stored as one JSON array under ``key`` and rewritten
    on every mutation. Single writer only.
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = OFFLINE_QUEUE_KEY):
        self._storage = storage
        self._key = key

    def _read(self) -> list[dict]:
        raw = self._storage.get(self._key)
        return list(json.loads(raw)) if raw else []

    def _write(self, items: list[dict]) -> None:
        if items:
            self._storage.set(self._key, json.dumps(items))
        else:
            self._storage.remove(self._key)

    def entries(self) -> list[OfflineQueueEntry]:
        return [OfflineQueueEntry.from_dict(item) for item in self._read()]

    def __len__(self) -> int:
        return len(self._read())

    def append(self, entry: OfflineQueueEntry) -> None:
        items = self._read()
        items.append(entry.to_dict())
        self._write(items)
        logger.info("Queued offline %s for %s (%d pending)", entry.action.value, entry.user_id, len(items))

    def clear(self) -> None:
        self._storage.remove(self._key)

    def drain(
        self,
        apply: Callable[[OfflineQueueEntry], None],
        *,
        retries: int = DEFAULT_SYNC_RETRIES,
        retry_delay: float = 0.0,
    ) -> int:
        """Replay entries oldest first and return how many were applied.

        Each entry is removed from storage right after it is applied, so the
        queue always holds exactly the entries not yet replayed. An entry
        that still fails after ``retries`` attempts raises ``SyncError`` and
        stays at the head of the queue with everything behind it.
        """
        attempts = max(1, int(retries))
        applied = 0
        while True:
            items = self._read()
            if not items:
                return applied

            entry = OfflineQueueEntry.from_dict(items[0])
            last_error: Exception | None = None
            for attempt in range(1, attempts + 1):
                try:
                    apply(entry)
                    last_error = None
                    break
                except Exception as e:
                    last_error = e
                    logger.warning(
                        "Replay of offline %s for %s failed (attempt %d/%d): %s",
                        entry.action.value, entry.user_id, attempt, attempts, e,
                    )
                    if retry_delay and attempt < attempts:
                        time.sleep(retry_delay)

            if last_error is not None:
                raise SyncError(applied, last_error)

            self._write(items[1:])
            applied += 1
