"""Simulate Aptos payload execution without network calls."""

import asyncio
import hashlib
import logging
from typing import Iterable, List, Optional, Tuple

from execution_controller.controller import OperationError
from execution_controller.modes import SubmissionReceipt
from execution_engine.models import Operation

from .adapter import AdapterError, operation_to_payload
from .models import DryRunResult, DryRunTxResult, EntryFunctionPayload

logger = logging.getLogger(__name__)


class SimulationError(ValueError):
    """Raised when a dry-run simulation cannot be performed."""


_DEFAULT_GAS_USED = 1_200
_DEFAULT_GAS_UNIT_PRICE = 100


def simulate(payloads: Iterable[EntryFunctionPayload]) -> DryRunResult:
    tx_results = []
    total_gas = 0
    total_cost = 0

    for payload in payloads:
        _validate_payload(payload)
        gas_used = _DEFAULT_GAS_USED
        cost = gas_used * _DEFAULT_GAS_UNIT_PRICE
        tx_results.append(
            DryRunTxResult(
                sequence=payload.sequence,
                success=True,
                gas_used=gas_used,
                cost_octas=cost,
                notes=("Dry-run only; no execution performed.",),
            )
        )
        total_gas += gas_used
        total_cost += cost

    return DryRunResult(
        success=True,
        tx_results=tuple(tx_results),
        total_gas_used=total_gas,
        total_cost_octas=total_cost,
        notes=("Simulation completed without network calls.",),
    )


class SimulatedChainClient:
    """Deterministic stand-in for a signing chain client.

    Transaction hashes are derived from the payload and submission count.
    Protocols listed in ``failing_protocols`` are rejected.
    """

    def __init__(
        self,
        failing_protocols: Iterable[str] = (),
        latency_seconds: float = 0.0,
    ) -> None:
        self._failing = frozenset(name.lower() for name in failing_protocols)
        self._latency = latency_seconds
        self._submitted: List[EntryFunctionPayload] = []

    @property
    def submitted(self) -> Tuple[EntryFunctionPayload, ...]:
        return tuple(self._submitted)

    async def sign_and_submit(
        self, operation: Operation, max_slippage_pct: float
    ) -> SubmissionReceipt:
        try:
            payload = operation_to_payload(operation)
        except AdapterError as exc:
            raise OperationError(str(exc)) from exc

        if self._latency:
            await asyncio.sleep(self._latency)

        self._submitted.append(payload)
        if operation.protocol.lower() in self._failing:
            raise OperationError(f"Transaction rejected by {operation.protocol}.")

        tx_hash = _derive_hash(payload, len(self._submitted))
        logger.debug("Simulated %s as %s", payload.function, tx_hash)
        return SubmissionReceipt(tx_hash=tx_hash)


def _derive_hash(payload: EntryFunctionPayload, counter: int) -> str:
    material = f"{payload.function}|{','.join(payload.arguments)}|{counter}"
    return "0x" + hashlib.sha256(material.encode("utf-8")).hexdigest()


def _validate_payload(payload: EntryFunctionPayload) -> None:
    address, _, path = payload.function.partition("::")
    if not address.startswith("0x") or not path:
        raise SimulationError("Payload must name a module-qualified function.")
    if not payload.arguments:
        raise SimulationError("Payload must include an amount argument.")
    if any(not argument.isdigit() for argument in payload.arguments):
        raise SimulationError("Payload arguments must be non-negative integers.")
