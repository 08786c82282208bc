from .controller import ChainClient, ExecutionCoordinator, OperationError
from .modes import (
    ExecutionOptions,
    ExecutionResult,
    OperationResult,
    OperationStatus,
    ProgressEvent,
    SubmissionReceipt,
)
from .policy import OperationGuard

__all__ = [
    "ChainClient",
    "ExecutionCoordinator",
    "ExecutionOptions",
    "ExecutionResult",
    "OperationError",
    "OperationGuard",
    "OperationResult",
    "OperationStatus",
    "ProgressEvent",
    "SubmissionReceipt",
]
