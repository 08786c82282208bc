"""Sequential execution of planned operations against the chain."""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Protocol

from execution_engine.models import Operation

from .modes import (
    ExecutionOptions,
    ExecutionResult,
    OperationResult,
    OperationStatus,
    ProgressEvent,
    SubmissionReceipt,
)
from .policy import OperationGuard

logger = logging.getLogger(__name__)


class OperationError(RuntimeError):
    """Raised by chain clients when one operation is rejected or fails."""


class ChainClient(Protocol):
    async def sign_and_submit(
        self, operation: Operation, max_slippage_pct: float
    ) -> SubmissionReceipt:
        ...


class ExecutionCoordinator:
    """Runs operations one at a time and records every outcome.

    Each operation depends on the nonce and balance left by the previous
    one, so nothing runs concurrently. Failures are recorded per operation
    and never raised to the caller.
    """

    def __init__(
        self,
        chain: ChainClient,
        guard: Optional[OperationGuard] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._chain = chain
        self._guard = guard or OperationGuard()
        self._sleep = sleep or asyncio.sleep

    async def execute(
        self,
        operations: Iterable[Operation],
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        options = options or ExecutionOptions()
        operations = tuple(operations)
        total = len(operations)

        succeeded: List[OperationResult] = []
        failed: List[OperationResult] = []
        not_attempted: tuple = ()

        for index, operation in enumerate(operations):
            result = await self._run_one(operation, options)
            if result.succeeded:
                succeeded.append(result)
            else:
                failed.append(result)

            completed = index + 1
            if options.on_progress is not None:
                _notify(
                    options.on_progress,
                    ProgressEvent(
                        completed=completed,
                        total=total,
                        percent=completed / total * 100,
                        message=_describe(result),
                        result=result,
                    ),
                )

            if not result.succeeded and options.abort_on_failure:
                not_attempted = operations[completed:]
                if not_attempted:
                    logger.warning(
                        "Aborting after failed %s on %s; %d operations not attempted",
                        operation.kind.value,
                        operation.protocol,
                        len(not_attempted),
                    )
                break

            if completed < total and options.per_operation_delay_ms > 0:
                await self._sleep(options.per_operation_delay_ms / 1000)

        return ExecutionResult(
            success=not failed,
            operations=tuple(succeeded),
            failed_operations=tuple(failed),
            not_attempted=not_attempted,
        )

    async def _run_one(self, operation: Operation, options: ExecutionOptions) -> OperationResult:
        violations = self._guard.validate(operation, options.max_slippage_pct)
        if violations:
            logger.warning("Rejected %s on %s: %s", operation.kind.value, operation.protocol, violations)
            return _failed(operation, " ".join(violations))

        try:
            submission = self._chain.sign_and_submit(operation, options.max_slippage_pct)
            if options.operation_timeout_seconds is None:
                receipt = await submission
            else:
                receipt = await asyncio.wait_for(submission, options.operation_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for %s on %s", operation.kind.value, operation.protocol)
            return _failed(
                operation,
                f"Timed out after {options.operation_timeout_seconds}s waiting for confirmation.",
            )
        except OperationError as exc:
            logger.warning("%s on %s failed: %s", operation.kind.value, operation.protocol, exc)
            return _failed(operation, str(exc))
        except Exception as exc:
            logger.warning(
                "%s on %s failed unexpectedly", operation.kind.value, operation.protocol, exc_info=True
            )
            return _failed(operation, f"{type(exc).__name__}: {exc}")

        logger.info(
            "%s %s on %s confirmed: %s",
            operation.kind.value,
            operation.amount,
            operation.protocol,
            receipt.tx_hash,
        )
        return OperationResult(
            operation=operation,
            status=OperationStatus.SUCCESS,
            tx_hash=receipt.tx_hash,
        )


def _failed(operation: Operation, error: str) -> OperationResult:
    return OperationResult(operation=operation, status=OperationStatus.FAILED, error=error)


def _notify(callback, event: ProgressEvent) -> None:
    # Observer errors are logged only; the operation has already been submitted.
    try:
        callback(event)
    except Exception:
        logger.warning("Progress callback failed at %d/%d", event.completed, event.total, exc_info=True)


def _describe(result: OperationResult) -> str:
    operation = result.operation
    action = f"{operation.kind.value} {operation.amount} on {operation.protocol}"
    if result.succeeded:
        return f"Completed {action}."
    return f"Failed {action}: {result.error}"
