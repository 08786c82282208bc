"""Interfaces the engine consumes, with local implementations."""

from pathlib import Path
from typing import Dict, Iterable, Mapping, Protocol, Tuple
import json

from core.models import AllocationEntry, Holding
from core.targets import RiskProfile
from execution_controller.controller import ChainClient


class HoldingsProvider(Protocol):
    async def get_holdings(self, wallet_address: str) -> Tuple[Holding, ...]:
        ...


class TargetAllocationProvider(Protocol):
    async def get_target_allocation(
        self, wallet_address: str, risk_profile: RiskProfile
    ) -> Tuple[AllocationEntry, ...]:
        ...


class StaticHoldingsProvider:
    def __init__(self, holdings: Mapping[str, Iterable[Holding]]) -> None:
        self._holdings: Dict[str, Tuple[Holding, ...]] = {
            wallet: tuple(items) for wallet, items in holdings.items()
        }

    def set_holdings(self, wallet_address: str, holdings: Iterable[Holding]) -> None:
        self._holdings[wallet_address] = tuple(holdings)

    async def get_holdings(self, wallet_address: str) -> Tuple[Holding, ...]:
        return self._holdings.get(wallet_address, ())


class FileHoldingsProvider:
    """Reads ``<directory>/<wallet>.json``, a list of holding objects.

    A wallet without a file has no holdings.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    async def get_holdings(self, wallet_address: str) -> Tuple[Holding, ...]:
        path = self._directory / f"{wallet_address}.json"
        if not path.exists():
            return ()
        data = json.loads(path.read_text())
        if not isinstance(data, list):
            raise ValueError(f"{path} must contain a list of holdings.")
        return tuple(Holding.from_dict(item) for item in data)


__all__ = [
    "ChainClient",
    "FileHoldingsProvider",
    "HoldingsProvider",
    "StaticHoldingsProvider",
    "TargetAllocationProvider",
]
