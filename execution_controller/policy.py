"""Pre-submission checks applied to every operation."""

from dataclasses import dataclass
from typing import Tuple

from execution_engine.models import Operation


@dataclass(frozen=True)
class OperationGuard:
    max_slippage_pct: float = 5.0

    def validate(self, operation: Operation, slippage_pct: float) -> Tuple[str, ...]:
        violations = []

        if not operation.amount > 0:
            violations.append(f"Invalid amount: {operation.amount}.")
        if not operation.target_contract:
            violations.append(f"No contract address for protocol: {operation.protocol}.")
        if not operation.function_id:
            violations.append(f"No function for {operation.kind.value} on {operation.protocol}.")
        if slippage_pct < 0 or slippage_pct > self.max_slippage_pct:
            violations.append("Slippage tolerance out of range.")

        return tuple(violations)
