from .adapter import AdapterError, operation_to_payload, plan_to_payloads, to_octas
from .models import DryRunResult, DryRunTxResult, EntryFunctionPayload
from .simulator import SimulatedChainClient, SimulationError, simulate

__all__ = [
    "AdapterError",
    "DryRunResult",
    "DryRunTxResult",
    "EntryFunctionPayload",
    "SimulatedChainClient",
    "SimulationError",
    "operation_to_payload",
    "plan_to_payloads",
    "simulate",
    "to_octas",
]
