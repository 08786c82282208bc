from .engine import (
    AllocationError,
    ZeroPortfolioError,
    analyze,
    current_allocation,
    needs_rebalance,
    total_value,
)
from .models import AllocationEntry, DriftDirection, DriftRecord, DriftReport, Holding
from .targets import RiskProfile, StaticTargetProvider, fallback_allocation, infer_risk_profile

__all__ = [
    "AllocationEntry",
    "AllocationError",
    "DriftDirection",
    "DriftRecord",
    "DriftReport",
    "Holding",
    "RiskProfile",
    "StaticTargetProvider",
    "ZeroPortfolioError",
    "analyze",
    "current_allocation",
    "fallback_allocation",
    "infer_risk_profile",
    "needs_rebalance",
    "total_value",
]
