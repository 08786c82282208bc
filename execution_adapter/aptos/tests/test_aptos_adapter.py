"""Payload translation, dry-run and simulated chain tests."""

import unittest

from execution_adapter.aptos.adapter import AdapterError, operation_to_payload, plan_to_payloads, to_octas
from execution_adapter.aptos.models import EntryFunctionPayload
from execution_adapter.aptos.simulator import SimulatedChainClient, SimulationError, simulate
from execution_controller.controller import OperationError
from execution_engine.models import Operation, OperationKind, Protocol


def _operation(sequence: int = 1, amount: float = 1.5, protocol: Protocol = Protocol.AMNIS) -> Operation:
    return Operation(
        sequence=sequence,
        protocol=protocol.spec.name,
        kind=OperationKind.STAKE,
        amount=amount,
        target_contract=protocol.spec.contract,
        function_id=protocol.spec.function_for(OperationKind.STAKE),
        drift_pct=5.0,
    )


class AdapterTests(unittest.TestCase):
    def test_payload_names_contract_function_and_octas(self) -> None:
        payload = operation_to_payload(_operation())

        self.assertEqual(
            payload.function, Protocol.AMNIS.spec.contract + "::staking::stake"
        )
        self.assertEqual(payload.arguments, ("150000000",))
        self.assertEqual(payload.type_arguments, ())

    def test_octas_round_down(self) -> None:
        self.assertEqual(to_octas(0.123456789), 12345678)

    def test_rejects_sub_octa_amounts(self) -> None:
        with self.assertRaises(AdapterError):
            operation_to_payload(_operation(amount=0.000000001))

    def test_rejects_unqualified_function(self) -> None:
        operation = Operation(1, "amnis", OperationKind.STAKE, 1.0, "0x1", "stake")

        with self.assertRaises(AdapterError):
            operation_to_payload(operation)


class SimulationTests(unittest.TestCase):
    def test_simulation_estimates_gas_per_payload(self) -> None:
        payloads = plan_to_payloads([_operation(1), _operation(2, protocol=Protocol.THALA)])

        result = simulate(payloads)

        self.assertTrue(result.success)
        self.assertEqual([tx.sequence for tx in result.tx_results], [1, 2])
        self.assertEqual(result.total_gas_used, 2400)
        self.assertEqual(result.total_cost_octas, 240000)

    def test_simulation_rejects_malformed_payload(self) -> None:
        payload = EntryFunctionPayload(1, "0x1::coin::withdraw", (), ("-5",))

        with self.assertRaises(SimulationError):
            simulate([payload])


class SimulatedChainClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_hashes_are_deterministic(self) -> None:
        first = await SimulatedChainClient().sign_and_submit(_operation(), 2.0)
        second = await SimulatedChainClient().sign_and_submit(_operation(), 2.0)

        self.assertEqual(first, second)
        self.assertTrue(first.tx_hash.startswith("0x"))

    async def test_failing_protocol_raises_operation_error(self) -> None:
        client = SimulatedChainClient(failing_protocols=("AMNIS",))

        with self.assertRaises(OperationError):
            await client.sign_and_submit(_operation(), 2.0)
        self.assertEqual(len(client.submitted), 1)


if __name__ == "__main__":
    unittest.main()
