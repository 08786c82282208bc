from .collaborators import (
    FileHoldingsProvider,
    HoldingsProvider,
    StaticHoldingsProvider,
    TargetAllocationProvider,
)
from .config import EngineConfig, get_config
from .pipeline import Assessment, RebalancePipeline, run_status
from .service import RebalanceService, build_service

__all__ = [
    "Assessment",
    "EngineConfig",
    "FileHoldingsProvider",
    "HoldingsProvider",
    "RebalancePipeline",
    "RebalanceService",
    "StaticHoldingsProvider",
    "TargetAllocationProvider",
    "build_service",
    "get_config",
    "run_status",
]
