"""Run history records."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple

from execution_controller.modes import OperationResult


class RunTrigger(Enum):
    SCHEDULED = "scheduled"
    MANUAL = "manual"
    FORCED = "forced"


class RunStatus(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RunRecord:
    timestamp: datetime
    trigger: RunTrigger
    drift_before: float
    operations: Tuple[OperationResult, ...]
    status: RunStatus
    reason: Optional[str] = None
    drift_after: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {
            "timestamp": self.timestamp.isoformat(),
            "trigger": self.trigger.value,
            "drift_before": self.drift_before,
            "operations": [item.to_dict() for item in self.operations],
            "status": self.status.value,
        }
        if self.reason is not None:
            result["reason"] = self.reason
        if self.drift_after is not None:
            result["drift_after"] = self.drift_after
        return result

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "RunRecord":
        drift_after = data.get("drift_after")
        return RunRecord(
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
            trigger=RunTrigger(data["trigger"]),
            drift_before=float(data["drift_before"]),
            operations=tuple(OperationResult.from_dict(item) for item in data.get("operations", [])),
            status=RunStatus(data["status"]),
            reason=data.get("reason"),
            drift_after=float(drift_after) if drift_after is not None else None,
        )


class HistoryStore(Protocol):
    def load_history(self, wallet_address: str) -> Tuple[RunRecord, ...]:
        ...

    def save_history(self, wallet_address: str, records: Tuple[RunRecord, ...]) -> None:
        ...
