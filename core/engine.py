"""Pure computation engine for allocation drift."""

from typing import Dict, Iterable, List, Tuple

from .models import AllocationEntry, DriftDirection, DriftRecord, DriftReport, Holding

DEFAULT_THRESHOLD_PCT = 5.0

_PCT_PLACES = 4
_ALLOCATION_TOLERANCE = 0.01


class ZeroPortfolioError(ValueError):
    """Raised when a portfolio has no value to rebalance."""


class AllocationError(ValueError):
    """Raised when a target allocation is malformed."""


def normalize_protocol(name: str) -> str:
    return name.strip().lower()


def total_value(holdings: Iterable[Holding]) -> float:
    return sum(
        holding.value_in_quote_currency
        for holding in holdings
        if holding.value_in_quote_currency > 0
    )


def current_allocation(holdings: Iterable[Holding]) -> Tuple[AllocationEntry, ...]:
    """Derive per-protocol percentages from a holdings snapshot."""

    holdings = tuple(holdings)
    total = total_value(holdings)
    if total <= 0:
        return ()

    values: Dict[str, float] = {}
    for holding in holdings:
        if holding.value_in_quote_currency <= 0:
            continue
        key = normalize_protocol(holding.protocol)
        values[key] = values.get(key, 0.0) + holding.value_in_quote_currency

    return tuple(
        AllocationEntry(protocol=protocol, percentage_of_total=_pct(value / total * 100))
        for protocol, value in sorted(values.items())
    )


def validate_allocation(allocation: Iterable[AllocationEntry]) -> Dict[str, float]:
    """Return the allocation as a protocol map, rejecting malformed input."""

    targets: Dict[str, float] = {}
    for entry in allocation:
        key = normalize_protocol(entry.protocol)
        if not key:
            raise AllocationError("Allocation entries must name a protocol.")
        if entry.percentage_of_total < 0:
            raise AllocationError(f"Negative allocation for {key}.")
        targets[key] = targets.get(key, 0.0) + entry.percentage_of_total

    if sum(targets.values()) > 100.0 + _ALLOCATION_TOLERANCE:
        raise AllocationError("Allocation percentages must sum to at most 100.")
    return targets


def analyze(
    holdings: Iterable[Holding],
    target_allocation: Iterable[AllocationEntry],
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
) -> DriftReport:
    """Compare current holdings with a target allocation.

    The result is a pure function of its inputs. Records are ordered by
    drift, largest first, which the planner reuses as execution priority.
    """

    holdings = tuple(holdings)
    targets = validate_allocation(target_allocation)
    total = total_value(holdings)
    if total <= 0:
        return _empty_report(threshold_pct)

    current = {
        entry.protocol: entry.percentage_of_total for entry in current_allocation(holdings)
    }

    records: List[DriftRecord] = []
    for protocol in sorted(set(current) | set(targets)):
        in_current = protocol in current
        in_target = protocol in targets
        current_pct = current.get(protocol, 0.0)
        target_pct = _pct(targets.get(protocol, 0.0))

        if in_current and in_target:
            direction = (
                DriftDirection.INCREASE if target_pct > current_pct else DriftDirection.DECREASE
            )
        elif in_current:
            direction = DriftDirection.REMOVE
        else:
            if target_pct <= 0:
                continue
            direction = DriftDirection.ADD

        records.append(
            DriftRecord(
                protocol=protocol,
                current_pct=current_pct,
                target_pct=target_pct,
                drift_pct=_pct(abs(current_pct - target_pct)),
                direction=direction,
            )
        )

    records.sort(key=lambda record: (-record.drift_pct, record.protocol))
    max_drift = max((record.drift_pct for record in records), default=0.0)
    average_drift = (
        _pct(sum(record.drift_pct for record in records) / len(records)) if records else 0.0
    )

    return DriftReport(
        records=tuple(records),
        max_drift=max_drift,
        average_drift=average_drift,
        needs_rebalance=needs_rebalance(max_drift, threshold_pct),
        total_value=total,
        threshold_pct=threshold_pct,
    )


def needs_rebalance(max_drift: float, threshold_pct: float) -> bool:
    return max_drift >= threshold_pct


def require_value(holdings: Iterable[Holding]) -> float:
    total = total_value(holdings)
    if total <= 0:
        raise ZeroPortfolioError("Portfolio has no value; nothing to rebalance.")
    return total


def _empty_report(threshold_pct: float) -> DriftReport:
    return DriftReport(
        records=(),
        max_drift=0.0,
        average_drift=0.0,
        needs_rebalance=False,
        total_value=0.0,
        threshold_pct=threshold_pct,
    )


def _pct(value: float) -> float:
    return round(value, _PCT_PLACES)
