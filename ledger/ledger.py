"""Append-only, capped history of rebalance runs per wallet."""

import logging
from typing import Optional, Tuple

from .models import HistoryStore, RunRecord

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_CAP = 10


class HistoryLedger:
    """Keeps the most recent runs of each wallet, newest first.

    Records are never updated or deleted individually; the oldest ones fall
    off when the cap is exceeded.
    """

    def __init__(self, store: HistoryStore, cap: int = DEFAULT_HISTORY_CAP) -> None:
        if cap < 1:
            raise ValueError("History cap must be at least 1.")
        self._store = store
        self._cap = cap

    @property
    def cap(self) -> int:
        return self._cap

    def append(self, wallet_address: str, record: RunRecord) -> None:
        existing = self._store.load_history(wallet_address)
        retained = ((record,) + existing)[: self._cap]
        self._store.save_history(wallet_address, retained)
        logger.info(
            "Recorded %s %s run for %s", record.trigger.value, record.status.value, wallet_address
        )

    def list(self, wallet_address: str, limit: Optional[int] = None) -> Tuple[RunRecord, ...]:
        records = self._store.load_history(wallet_address)
        if limit is None:
            return records
        if limit < 0:
            raise ValueError("limit must be non-negative.")
        return records[:limit]
