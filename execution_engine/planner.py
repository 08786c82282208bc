"""Deterministic rebalance planner with validation."""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from core.engine import normalize_protocol, require_value
from core.models import DriftRecord, DriftReport, Holding

from .models import (
    CATEGORY_OPERATIONS,
    Operation,
    OperationKind,
    OperationPlan,
    PlanningIssue,
    Protocol,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_ACTIONABLE_DRIFT_PCT = 1.0
DEFAULT_MIN_OPERATION_AMOUNT = 0.01


class PlanningError(ValueError):
    """Raised when a single protocol cannot be planned."""


class PlanValidationError(ValueError):
    """Raised when a plan violates hard ordering or sizing rules."""


@dataclass(frozen=True)
class PlanningPolicy:
    preserve_staked_positions: bool = True
    max_operations: Optional[int] = None


class OperationPlanner:
    """Turns a drift report into an ordered list of operations."""

    def __init__(
        self,
        min_actionable_drift_pct: float = DEFAULT_MIN_ACTIONABLE_DRIFT_PCT,
        quote_protocol: str = "native",
        min_operation_amount: float = DEFAULT_MIN_OPERATION_AMOUNT,
    ) -> None:
        self._min_drift = min_actionable_drift_pct
        self._quote_protocol = quote_protocol
        self._min_amount = min_operation_amount

    def plan(
        self,
        report: DriftReport,
        holdings: Iterable[Holding],
        policy: PlanningPolicy,
    ) -> OperationPlan:
        holdings = tuple(holdings)
        total = require_value(holdings)

        actionable = [record for record in report.records if record.drift_pct >= self._min_drift]
        decreases = [record for record in actionable if record.direction.frees_capital]
        increases = [record for record in actionable if not record.direction.frees_capital]

        errors: List[PlanningIssue] = []
        dropped: List[str] = []
        try:
            price = quote_price(holdings, self._quote_protocol)
        except PlanningError as exc:
            issues = tuple(PlanningIssue(record.protocol, str(exc)) for record in actionable)
            return OperationPlan(operations=(), errors=issues)

        operations: List[Operation] = []
        for record in decreases + increases:
            try:
                operation = self._plan_record(
                    record, total, price, sequence=len(operations) + 1, policy=policy
                )
            except PlanningError as exc:
                logger.warning("Skipping %s: %s", record.protocol, exc)
                errors.append(PlanningIssue(protocol=record.protocol, reason=str(exc)))
                continue
            if operation is None:
                if record.direction.frees_capital:
                    dropped.append(record.protocol)
                continue
            operations.append(operation)

        deferred: Tuple[str, ...] = ()
        if policy.max_operations is not None and len(operations) > policy.max_operations:
            deferred = tuple(op.protocol for op in operations[policy.max_operations:])
            operations = operations[: policy.max_operations]

        plan = OperationPlan(
            operations=tuple(operations),
            errors=tuple(errors),
            dropped=tuple(dropped),
            deferred=deferred,
        )
        validate_plan(plan, self._min_drift)
        return plan

    def _plan_record(
        self,
        record: DriftRecord,
        total: float,
        price: float,
        sequence: int,
        policy: PlanningPolicy,
    ) -> Optional[Operation]:
        protocol = Protocol.lookup(record.protocol)
        if protocol is None:
            raise PlanningError(f"Unsupported protocol: {record.protocol}")

        increase_kind, decrease_kind = CATEGORY_OPERATIONS[protocol.category]
        if record.direction.frees_capital:
            if policy.preserve_staked_positions and protocol.is_staking:
                return None
            kind: Optional[OperationKind] = decrease_kind
        else:
            # Freed capital settles in the wallet balance without a transaction.
            if increase_kind is None:
                return None
            kind = increase_kind

        function_id = protocol.spec.function_for(kind)
        if function_id is None:
            raise PlanningError(f"{protocol.spec.name} has no {kind.value} function.")

        amount_in_quote = record.drift_pct / 100 * total
        amount = round(amount_in_quote / price, protocol.spec.display_precision)
        if amount <= 0:
            raise PlanningError(f"Amount for {protocol.spec.name} rounds to zero.")
        if amount < self._min_amount:
            raise PlanningError(
                f"Amount {amount} for {protocol.spec.name} is below the minimum of {self._min_amount}."
            )

        return Operation(
            sequence=sequence,
            protocol=protocol.spec.name,
            kind=kind,
            amount=amount,
            target_contract=protocol.spec.contract,
            function_id=function_id,
            amount_in_quote=round(amount_in_quote, 2),
            drift_pct=record.drift_pct,
        )


def quote_price(holdings: Iterable[Holding], quote_protocol: str = "native") -> float:
    """Price of one quote-asset unit, from the native balance when held."""

    holdings = tuple(holdings)
    native = [
        holding
        for holding in holdings
        if normalize_protocol(holding.protocol) == quote_protocol and holding.amount_units > 0
    ]
    pool = native or [holding for holding in holdings if holding.amount_units > 0]
    units = sum(holding.amount_units for holding in pool)
    value = sum(holding.value_in_quote_currency for holding in pool)
    if units <= 0 or value <= 0:
        raise PlanningError("Cannot determine the quote asset price from holdings.")
    return value / units


def validate_plan(plan: OperationPlan, min_drift_pct: float = DEFAULT_MIN_ACTIONABLE_DRIFT_PCT) -> None:
    sequences = [operation.sequence for operation in plan.operations]
    if sequences != sorted(sequences) or len(set(sequences)) != len(sequences):
        raise PlanValidationError("Operations must be ordered by unique sequence.")

    seen_increase = False
    for operation in plan.operations:
        if operation.kind.frees_capital:
            if seen_increase:
                raise PlanValidationError("Decreases must precede increases.")
        else:
            seen_increase = True
        if operation.amount <= 0:
            raise PlanValidationError("Operation amount must be positive.")
        if operation.drift_pct < min_drift_pct:
            raise PlanValidationError("Operation drift is below the actionable minimum.")
