"""Risk profiles and the fixed fallback target allocations."""

from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .engine import normalize_protocol, total_value
from .models import AllocationEntry, Holding


class RiskProfile(Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"

    @staticmethod
    def parse(value: str) -> "RiskProfile":
        normalized = value.strip().lower()
        for profile in RiskProfile:
            if profile.value == normalized:
                return profile
        raise ValueError(f"Unsupported risk profile: {value}")


FALLBACK_ALLOCATIONS: Dict[RiskProfile, Tuple[AllocationEntry, ...]] = {
    RiskProfile.CONSERVATIVE: (
        AllocationEntry(protocol="amnis", percentage_of_total=60.0, expected_yield=7.5),
        AllocationEntry(protocol="thala", percentage_of_total=40.0, expected_yield=3.2),
    ),
    RiskProfile.BALANCED: (
        AllocationEntry(protocol="thala", percentage_of_total=40.0, expected_yield=8.2),
        AllocationEntry(protocol="amnis", percentage_of_total=30.0, expected_yield=7.5),
        AllocationEntry(protocol="echo", percentage_of_total=30.0, expected_yield=4.1),
    ),
    RiskProfile.AGGRESSIVE: (
        AllocationEntry(protocol="thala", percentage_of_total=35.0, expected_yield=8.2),
        AllocationEntry(protocol="echo", percentage_of_total=40.0, expected_yield=4.1),
        AllocationEntry(protocol="pancakeswap", percentage_of_total=25.0, expected_yield=18.5),
    ),
}

# Protocol groups used to guess a profile from what a wallet already holds.
_STAKING = frozenset({"amnis", "thala", "tortuga", "ditto"})
_LIQUIDITY = frozenset({"pancakeswap", "liquidswap", "cetus", "amm"})
_NATIVE = "native"


def fallback_allocation(profile: RiskProfile) -> Tuple[AllocationEntry, ...]:
    return FALLBACK_ALLOCATIONS[profile]


def infer_risk_profile(holdings: Iterable[Holding]) -> RiskProfile:
    """Guess a risk profile from the shape of the current portfolio."""

    holdings = tuple(holdings)
    total = total_value(holdings)
    if total <= 0:
        return RiskProfile.BALANCED

    native = staked = liquidity = 0.0
    for holding in holdings:
        value = max(holding.value_in_quote_currency, 0.0)
        protocol = normalize_protocol(holding.protocol)
        if protocol == _NATIVE:
            native += value
        elif protocol in _STAKING:
            staked += value
        elif protocol in _LIQUIDITY:
            liquidity += value

    if liquidity / total * 100 > 30:
        return RiskProfile.AGGRESSIVE
    if staked / total * 100 > 60:
        return RiskProfile.BALANCED
    if native / total * 100 > 70:
        return RiskProfile.CONSERVATIVE
    return RiskProfile.BALANCED


class StaticTargetProvider:
    """Serves the fixed per-profile allocation table."""

    def __init__(
        self, overrides: Optional[Dict[RiskProfile, Tuple[AllocationEntry, ...]]] = None
    ) -> None:
        self._table = dict(FALLBACK_ALLOCATIONS)
        if overrides:
            self._table.update(overrides)

    async def get_target_allocation(
        self, wallet_address: str, risk_profile: RiskProfile
    ) -> Tuple[AllocationEntry, ...]:
        return self._table[risk_profile]
