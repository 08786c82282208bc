"""Execution options, progress events and per-operation outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from execution_engine.models import Operation

DEFAULT_PER_OPERATION_DELAY_MS = 500
DEFAULT_OPERATION_TIMEOUT_SECONDS = 120.0


class OperationStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionReceipt:
    tx_hash: str


@dataclass(frozen=True)
class OperationResult:
    operation: Operation
    status: OperationStatus
    tx_hash: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def to_dict(self) -> Dict[str, object]:
        result = self.operation.to_dict()
        result["status"] = self.status.value
        if self.tx_hash is not None:
            result["tx_hash"] = self.tx_hash
        if self.error is not None:
            result["error"] = self.error
        return result

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "OperationResult":
        return OperationResult(
            operation=Operation.from_dict(data),
            status=OperationStatus(data["status"]),
            tx_hash=data.get("tx_hash"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class ProgressEvent:
    completed: int
    total: int
    percent: float
    message: str
    result: OperationResult


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class ExecutionOptions:
    max_slippage_pct: float = 2.0
    abort_on_failure: bool = False
    per_operation_delay_ms: int = DEFAULT_PER_OPERATION_DELAY_MS
    operation_timeout_seconds: Optional[float] = DEFAULT_OPERATION_TIMEOUT_SECONDS
    on_progress: Optional[ProgressCallback] = field(default=None, compare=False)


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    operations: Tuple[OperationResult, ...]
    failed_operations: Tuple[OperationResult, ...]
    not_attempted: Tuple[Operation, ...] = ()

    @property
    def results(self) -> Tuple[OperationResult, ...]:
        """All attempted results in execution order."""

        return tuple(
            sorted(
                self.operations + self.failed_operations,
                key=lambda result: result.operation.sequence,
            )
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "operations": [result.to_dict() for result in self.operations],
            "failed_operations": [result.to_dict() for result in self.failed_operations],
            "not_attempted": [operation.to_dict() for operation in self.not_attempted],
        }
