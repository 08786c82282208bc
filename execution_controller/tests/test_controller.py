"""Sequential execution, failure containment and progress tests."""

import asyncio
import unittest
from typing import List

from execution_controller.controller import ExecutionCoordinator, OperationError
from execution_controller.modes import (
    ExecutionOptions,
    OperationStatus,
    ProgressEvent,
    SubmissionReceipt,
)
from execution_controller.policy import OperationGuard
from execution_engine.models import Operation, OperationKind


def _operation(sequence: int, protocol: str, amount: float = 1.0, **overrides) -> Operation:
    fields = dict(
        sequence=sequence,
        protocol=protocol,
        kind=OperationKind.STAKE,
        amount=amount,
        target_contract="0x1",
        function_id="::staking::stake",
        drift_pct=5.0,
    )
    fields.update(overrides)
    return Operation(**fields)


class RecordingChain:
    def __init__(self, failing=(), hang=(), explode=()) -> None:
        self.failing = set(failing)
        self.hang = set(hang)
        self.explode = set(explode)
        self.calls: List[str] = []

    async def sign_and_submit(self, operation, max_slippage_pct):
        self.calls.append(operation.protocol)
        if operation.protocol in self.hang:
            await asyncio.sleep(10)
        if operation.protocol in self.failing:
            raise OperationError(f"{operation.protocol} rejected")
        if operation.protocol in self.explode:
            raise ConnectionError("node unreachable")
        return SubmissionReceipt(tx_hash=f"0x{operation.sequence:02d}")


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


OPERATIONS = (_operation(1, "native"), _operation(2, "amnis"), _operation(3, "thala"))


class ExecutionCoordinatorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.sleep = RecordingSleep()

    async def test_empty_list_succeeds_without_network(self) -> None:
        chain = RecordingChain()
        coordinator = ExecutionCoordinator(chain, sleep=self.sleep)

        result = await coordinator.execute([])

        self.assertTrue(result.success)
        self.assertEqual(result.operations, ())
        self.assertEqual(result.failed_operations, ())
        self.assertEqual(chain.calls, [])
        self.assertEqual(self.sleep.delays, [])

    async def test_failure_in_middle_does_not_stop_the_run(self) -> None:
        chain = RecordingChain(failing={"amnis"})
        events: List[ProgressEvent] = []
        coordinator = ExecutionCoordinator(chain, sleep=self.sleep)

        result = await coordinator.execute(OPERATIONS, ExecutionOptions(on_progress=events.append))

        self.assertFalse(result.success)
        self.assertEqual([r.operation.protocol for r in result.operations], ["native", "thala"])
        self.assertEqual([r.operation.protocol for r in result.failed_operations], ["amnis"])
        self.assertEqual(result.failed_operations[0].error, "amnis rejected")
        self.assertEqual(chain.calls, ["native", "amnis", "thala"])
        self.assertEqual([event.completed for event in events], [1, 2, 3])
        self.assertAlmostEqual(events[-1].percent, 100.0)
        self.assertEqual(
            len(result.operations) + len(result.failed_operations), len(OPERATIONS)
        )

    async def test_progress_callback_errors_do_not_stop_the_run(self) -> None:
        chain = RecordingChain()
        coordinator = ExecutionCoordinator(chain, sleep=self.sleep)

        def broken_observer(event: ProgressEvent) -> None:
            raise BrokenPipeError("stderr closed")

        with self.assertLogs("execution_controller.controller", level="WARNING"):
            result = await coordinator.execute(
                OPERATIONS, ExecutionOptions(on_progress=broken_observer)
            )

        self.assertTrue(result.success)
        self.assertEqual(chain.calls, ["native", "amnis", "thala"])
        self.assertEqual(len(result.operations), 3)

    async def test_delay_only_between_operations(self) -> None:
        coordinator = ExecutionCoordinator(RecordingChain(), sleep=self.sleep)

        await coordinator.execute(OPERATIONS, ExecutionOptions(per_operation_delay_ms=500))

        self.assertEqual(self.sleep.delays, [0.5, 0.5])

    async def test_abort_on_failure_leaves_rest_not_attempted(self) -> None:
        chain = RecordingChain(failing={"native"})
        coordinator = ExecutionCoordinator(chain, sleep=self.sleep)

        result = await coordinator.execute(OPERATIONS, ExecutionOptions(abort_on_failure=True))

        self.assertEqual(chain.calls, ["native"])
        self.assertEqual([op.protocol for op in result.not_attempted], ["amnis", "thala"])

    async def test_timeout_is_recorded_as_failure(self) -> None:
        chain = RecordingChain(hang={"amnis"})
        coordinator = ExecutionCoordinator(chain, sleep=self.sleep)

        result = await coordinator.execute(
            OPERATIONS, ExecutionOptions(operation_timeout_seconds=0.01)
        )

        self.assertEqual([r.operation.protocol for r in result.failed_operations], ["amnis"])
        self.assertIn("Timed out", result.failed_operations[0].error)
        self.assertEqual(len(result.operations), 2)

    async def test_unexpected_errors_are_contained(self) -> None:
        coordinator = ExecutionCoordinator(RecordingChain(explode={"thala"}), sleep=self.sleep)

        result = await coordinator.execute(OPERATIONS)

        self.assertEqual(result.failed_operations[0].status, OperationStatus.FAILED)
        self.assertIn("node unreachable", result.failed_operations[0].error)

    async def test_invalid_operation_is_rejected_before_submission(self) -> None:
        chain = RecordingChain()
        coordinator = ExecutionCoordinator(chain, sleep=self.sleep)
        operations = (_operation(1, "native", target_contract=""), _operation(2, "thala"))

        result = await coordinator.execute(operations)

        self.assertEqual(chain.calls, ["thala"])
        self.assertIn("No contract address", result.failed_operations[0].error)

    async def test_results_are_in_execution_order(self) -> None:
        coordinator = ExecutionCoordinator(RecordingChain(failing={"amnis"}), sleep=self.sleep)

        result = await coordinator.execute(OPERATIONS)

        self.assertEqual([r.operation.sequence for r in result.results], [1, 2, 3])
        self.assertEqual(result.results[0].tx_hash, "0x01")


class OperationGuardTests(unittest.TestCase):
    def test_flags_each_problem(self) -> None:
        operation = _operation(1, "amnis", amount=0.0, function_id="")

        violations = OperationGuard().validate(operation, slippage_pct=9.0)

        self.assertEqual(len(violations), 3)

    def test_valid_operation_passes(self) -> None:
        self.assertEqual(OperationGuard().validate(_operation(1, "amnis"), 2.0), ())


if __name__ == "__main__":
    unittest.main()
