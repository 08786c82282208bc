"""Per-wallet rebalance settings and schedule status."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional, Protocol, Tuple

from core.targets import RiskProfile
from execution_engine.planner import PlanningPolicy


class SettingsValidationError(ValueError):
    """Raised when a settings update is out of range."""


THRESHOLD_RANGE = (1.0, 20.0)
SLIPPAGE_RANGE = (0.1, 5.0)
INTERVAL_HOURS_RANGE = (1.0, 720.0)
MAX_OPERATIONS_RANGE = (1, 10)

UPDATABLE_FIELDS = (
    "enabled",
    "interval_hours",
    "threshold_pct",
    "max_slippage_pct",
    "preserve_staked_positions",
    "max_operations",
    "risk_profile",
)


@dataclass(frozen=True)
class RebalanceSettings:
    enabled: bool = False
    interval_hours: float = 24.0
    threshold_pct: float = 5.0
    max_slippage_pct: float = 2.0
    preserve_staked_positions: bool = True
    max_operations: int = 6
    risk_profile: Optional[RiskProfile] = None
    last_run_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None

    def planning_policy(self) -> PlanningPolicy:
        return PlanningPolicy(
            preserve_staked_positions=self.preserve_staked_positions,
            max_operations=self.max_operations,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "enabled": self.enabled,
            "interval_hours": self.interval_hours,
            "threshold_pct": self.threshold_pct,
            "max_slippage_pct": self.max_slippage_pct,
            "preserve_staked_positions": self.preserve_staked_positions,
            "max_operations": self.max_operations,
            "risk_profile": self.risk_profile.value if self.risk_profile else None,
            "last_run_at": _iso(self.last_run_at),
            "next_run_at": _iso(self.next_run_at),
        }

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "RebalanceSettings":
        defaults = RebalanceSettings()
        risk_profile = data.get("risk_profile")
        return RebalanceSettings(
            enabled=bool(data.get("enabled", defaults.enabled)),
            interval_hours=float(data.get("interval_hours", defaults.interval_hours)),
            threshold_pct=float(data.get("threshold_pct", defaults.threshold_pct)),
            max_slippage_pct=float(data.get("max_slippage_pct", defaults.max_slippage_pct)),
            preserve_staked_positions=bool(
                data.get("preserve_staked_positions", defaults.preserve_staked_positions)
            ),
            max_operations=int(data.get("max_operations", defaults.max_operations)),
            risk_profile=RiskProfile.parse(str(risk_profile)) if risk_profile else None,
            last_run_at=_parse_iso(data.get("last_run_at")),
            next_run_at=_parse_iso(data.get("next_run_at")),
        )


@dataclass(frozen=True)
class ScheduleStatus:
    enabled: bool
    last_run_at: Optional[datetime]
    next_run_at: Optional[datetime]
    running: bool
    cooldown_remaining_seconds: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "enabled": self.enabled,
            "last_run_at": _iso(self.last_run_at),
            "next_run_at": _iso(self.next_run_at),
            "running": self.running,
            "cooldown_remaining_seconds": self.cooldown_remaining_seconds,
        }


def cooldown_remaining(settings: RebalanceSettings, now: datetime) -> timedelta:
    """Time left before a manual run may start; zero when none is pending."""

    if settings.last_run_at is None:
        return timedelta(0)
    remaining = settings.last_run_at + timedelta(hours=settings.interval_hours) - now
    return max(remaining, timedelta(0))


class SettingsStore(Protocol):
    def get_settings(self, wallet_address: str) -> RebalanceSettings:
        ...

    def put_settings(self, wallet_address: str, settings: RebalanceSettings) -> None:
        ...

    def list_wallets(self) -> Tuple[str, ...]:
        ...


def apply_update(settings: RebalanceSettings, changes: Mapping[str, object]) -> RebalanceSettings:
    """Return ``settings`` with validated ``changes`` applied."""

    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise SettingsValidationError(f"Unknown settings: {', '.join(unknown)}")

    values: Dict[str, object] = {}
    for name, value in changes.items():
        if value is None and name != "risk_profile":
            continue
        values[name] = _coerce(name, value)

    updated = replace(settings, **values)
    validate_settings(updated)
    return updated


def validate_settings(settings: RebalanceSettings) -> None:
    _check_range("threshold_pct", settings.threshold_pct, THRESHOLD_RANGE)
    _check_range("max_slippage_pct", settings.max_slippage_pct, SLIPPAGE_RANGE)
    _check_range("interval_hours", settings.interval_hours, INTERVAL_HOURS_RANGE)
    _check_range("max_operations", settings.max_operations, MAX_OPERATIONS_RANGE)


def _coerce(name: str, value: object) -> object:
    try:
        if name in ("enabled", "preserve_staked_positions"):
            if not isinstance(value, bool):
                raise SettingsValidationError(f"{name} must be a boolean.")
            return value
        if name == "max_operations":
            if isinstance(value, bool) or int(value) != float(value):
                raise SettingsValidationError("max_operations must be an integer.")
            return int(value)
        if name == "risk_profile":
            if value is None or isinstance(value, RiskProfile):
                return value
            return RiskProfile.parse(str(value))
        if isinstance(value, bool):
            raise SettingsValidationError(f"{name} must be a number.")
        return float(value)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, SettingsValidationError):
            raise
        raise SettingsValidationError(f"Invalid value for {name}: {value!r}") from exc


def _check_range(name: str, value: float, bounds: Tuple[float, float]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise SettingsValidationError(f"{name} must be between {low} and {high}; got {value}.")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_iso(value: object) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromisoformat(str(value))
