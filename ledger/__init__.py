from .ledger import DEFAULT_HISTORY_CAP, HistoryLedger
from .models import HistoryStore, RunRecord, RunStatus, RunTrigger

__all__ = [
    "DEFAULT_HISTORY_CAP",
    "HistoryLedger",
    "HistoryStore",
    "RunRecord",
    "RunStatus",
    "RunTrigger",
]
