"""Aptos adapter models for unsigned payloads and dry-run output."""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class EntryFunctionPayload:
    sequence: int
    function: str
    type_arguments: Tuple[str, ...]
    arguments: Tuple[str, ...]


@dataclass(frozen=True)
class DryRunTxResult:
    sequence: int
    success: bool
    gas_used: int
    cost_octas: int
    notes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DryRunResult:
    success: bool
    tx_results: Tuple[DryRunTxResult, ...]
    total_gas_used: int
    total_cost_octas: int
    notes: Tuple[str, ...] = ()
