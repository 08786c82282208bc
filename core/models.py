"""Domain schemas for the allocation analyzer."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Holding:
    """One position reported by the chain-data provider."""

    asset_key: str
    protocol: str
    amount_units: float
    value_in_quote_currency: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "asset_key": self.asset_key,
            "protocol": self.protocol,
            "amount_units": self.amount_units,
            "value_in_quote_currency": self.value_in_quote_currency,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Holding":
        try:
            return Holding(
                asset_key=str(data["asset_key"]),
                protocol=str(data["protocol"]),
                amount_units=float(data["amount_units"]),
                value_in_quote_currency=float(data["value_in_quote_currency"]),
            )
        except KeyError as exc:
            raise ValueError(f"Holding is missing {exc.args[0]!r}: {data!r}") from exc
        except TypeError as exc:
            raise ValueError(f"Malformed holding: {data!r}") from exc


@dataclass(frozen=True)
class AllocationEntry:
    """Share of total portfolio value assigned to a protocol."""

    protocol: str
    percentage_of_total: float
    expected_yield: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {
            "protocol": self.protocol,
            "percentage_of_total": self.percentage_of_total,
        }
        if self.expected_yield is not None:
            result["expected_yield"] = self.expected_yield
        return result

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "AllocationEntry":
        if not isinstance(data, dict):
            raise ValueError(f"Allocation entry must be an object: {data!r}")
        percentage = data.get("percentage_of_total", data.get("percentage"))
        if percentage is None or "protocol" not in data:
            raise ValueError(f"Allocation entry needs protocol and percentage_of_total: {data!r}")
        expected_yield = data.get("expected_yield", data.get("expectedYield"))
        return AllocationEntry(
            protocol=str(data["protocol"]),
            percentage_of_total=float(percentage),
            expected_yield=float(expected_yield) if expected_yield is not None else None,
        )


class DriftDirection(Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    ADD = "add"
    REMOVE = "remove"

    @property
    def frees_capital(self) -> bool:
        return self in (DriftDirection.DECREASE, DriftDirection.REMOVE)


@dataclass(frozen=True)
class DriftRecord:
    protocol: str
    current_pct: float
    target_pct: float
    drift_pct: float
    direction: DriftDirection

    def to_dict(self) -> Dict[str, object]:
        return {
            "protocol": self.protocol,
            "current_pct": self.current_pct,
            "target_pct": self.target_pct,
            "drift_pct": self.drift_pct,
            "direction": self.direction.value,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "DriftRecord":
        return DriftRecord(
            protocol=str(data["protocol"]),
            current_pct=float(data["current_pct"]),
            target_pct=float(data["target_pct"]),
            drift_pct=float(data["drift_pct"]),
            direction=DriftDirection(data["direction"]),
        )


@dataclass(frozen=True)
class DriftReport:
    """Drift between a wallet's current and target allocation."""

    records: Tuple[DriftRecord, ...]
    max_drift: float
    average_drift: float
    needs_rebalance: bool
    total_value: float
    threshold_pct: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "records": [record.to_dict() for record in self.records],
            "max_drift": self.max_drift,
            "average_drift": self.average_drift,
            "needs_rebalance": self.needs_rebalance,
            "total_value": self.total_value,
            "threshold_pct": self.threshold_pct,
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "DriftReport":
        return DriftReport(
            records=tuple(DriftRecord.from_dict(item) for item in data.get("records", [])),
            max_drift=float(data["max_drift"]),
            average_drift=float(data["average_drift"]),
            needs_rebalance=bool(data["needs_rebalance"]),
            total_value=float(data.get("total_value", 0.0)),
            threshold_pct=float(data.get("threshold_pct", 0.0)),
        )
