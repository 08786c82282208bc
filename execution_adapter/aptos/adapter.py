"""Translate planned operations into unsigned Aptos entry-function payloads."""

from decimal import ROUND_DOWN, Decimal
from typing import Iterable, Tuple

from execution_engine.models import Operation

from .models import EntryFunctionPayload

OCTAS_PER_APT = 100_000_000


class AdapterError(ValueError):
    """Raised when an operation cannot be adapted to an Aptos payload."""


def plan_to_payloads(operations: Iterable[Operation]) -> Tuple[EntryFunctionPayload, ...]:
    return tuple(operation_to_payload(operation) for operation in operations)


def operation_to_payload(operation: Operation) -> EntryFunctionPayload:
    if not operation.target_contract.startswith("0x"):
        raise AdapterError("Target contract must be a hex address.")
    if not operation.function_id.startswith("::"):
        raise AdapterError("Function id must be module-qualified.")

    octas = to_octas(operation.amount)
    if octas <= 0:
        raise AdapterError("Operation amount must be at least one octa.")

    return EntryFunctionPayload(
        sequence=operation.sequence,
        function=f"{operation.target_contract}{operation.function_id}",
        type_arguments=(),
        arguments=(str(octas),),
    )


def to_octas(amount: float) -> int:
    value = Decimal(str(amount)) * OCTAS_PER_APT
    return int(value.to_integral_value(rounding=ROUND_DOWN))
