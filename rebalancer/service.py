"""Engine facade used by the CLI and the HTTP API."""

from pathlib import Path
from typing import Mapping, Optional, Tuple

from execution_adapter.aptos.adapter import plan_to_payloads
from execution_adapter.aptos.models import DryRunResult
from execution_adapter.aptos.simulator import SimulatedChainClient, simulate
from execution_controller.controller import ChainClient, ExecutionCoordinator
from execution_controller.modes import ExecutionOptions, ExecutionResult, ProgressCallback
from execution_engine.models import OperationPlan
from execution_engine.planner import OperationPlanner
from ledger.ledger import HistoryLedger
from ledger.models import RunRecord, RunTrigger
from scheduler.models import RebalanceSettings, ScheduleStatus, SettingsStore
from scheduler.scheduler import RebalanceScheduler
from storage.store import FileStateStore, InMemoryStateStore

from .ai_targets import AITargetProvider
from .collaborators import (
    FileHoldingsProvider,
    HoldingsProvider,
    StaticHoldingsProvider,
    TargetAllocationProvider,
)
from .config import EngineConfig, get_config
from .pipeline import Assessment, RebalancePipeline


class RebalanceService:
    def __init__(
        self,
        scheduler: RebalanceScheduler,
        pipeline: RebalancePipeline,
        ledger: HistoryLedger,
    ) -> None:
        self._scheduler = scheduler
        self._pipeline = pipeline
        self._ledger = ledger

    @property
    def scheduler(self) -> RebalanceScheduler:
        return self._scheduler

    async def check_drift(self, wallet_address: str) -> Assessment:
        """Drift report for the wallet, with the holdings, profile and targets behind it."""

        return await self._pipeline.assess(wallet_address, self._scheduler.settings(wallet_address))

    async def preview(self, wallet_address: str) -> Tuple[Assessment, OperationPlan]:
        """Plan against current drift without executing or recording anything."""

        settings = self._scheduler.settings(wallet_address)
        assessment = await self._pipeline.assess(wallet_address, settings)
        return assessment, self._pipeline.plan(assessment, settings)

    async def dry_run(self, wallet_address: str) -> Tuple[OperationPlan, DryRunResult]:
        _, plan = await self.preview(wallet_address)
        return plan, simulate(plan_to_payloads(plan.operations))

    async def run_rebalance(self, wallet_address: str, force: bool = False) -> ExecutionResult:
        """Run now; unforced runs raise ``CooldownActiveError`` inside the cooldown."""

        trigger = RunTrigger.FORCED if force else RunTrigger.MANUAL
        return await self._scheduler.run(wallet_address, trigger)

    def get_settings(self, wallet_address: str) -> RebalanceSettings:
        return self._scheduler.settings(wallet_address)

    def update_settings(self, wallet_address: str, **changes: object) -> RebalanceSettings:
        return self._scheduler.update_settings(wallet_address, changes)

    def get_status(self, wallet_address: str) -> ScheduleStatus:
        return self._scheduler.status(wallet_address)

    def get_history(
        self, wallet_address: str, limit: Optional[int] = None
    ) -> Tuple[RunRecord, ...]:
        return self._ledger.list(wallet_address, limit)

    async def tick(self) -> Tuple[str, ...]:
        self._scheduler.load()
        return await self._scheduler.tick()


def build_service(
    config: Optional[EngineConfig] = None,
    store: Optional[SettingsStore] = None,
    holdings: Optional[HoldingsProvider] = None,
    targets: Optional[TargetAllocationProvider] = None,
    chain: Optional[ChainClient] = None,
    on_progress: Optional[ProgressCallback] = None,
    coordinator: Optional[ExecutionCoordinator] = None,
) -> RebalanceService:
    """Wire the engine from config, overriding any collaborator passed in."""

    config = config or get_config()
    if store is None:
        store = FileStateStore(Path(config.state_path)) if config.state_path else InMemoryStateStore()
    if holdings is None:
        holdings = (
            FileHoldingsProvider(Path(config.holdings_dir))
            if config.holdings_dir
            else StaticHoldingsProvider({})
        )
    if targets is None:
        targets = AITargetProvider(
            api_key=config.ai_api_key,
            model=config.ai_model,
            endpoint=config.ai_endpoint,
            timeout_seconds=config.ai_timeout_seconds,
        )
    if coordinator is None:
        coordinator = ExecutionCoordinator(
            chain or SimulatedChainClient(failing_protocols=config.failing_protocols)
        )

    ledger = HistoryLedger(store, cap=config.history_cap)
    pipeline = RebalancePipeline(
        holdings=holdings,
        targets=targets,
        coordinator=coordinator,
        ledger=ledger,
        planner=OperationPlanner(
            min_actionable_drift_pct=config.min_actionable_drift_pct,
            min_operation_amount=config.min_operation_amount,
        ),
        execution_defaults=ExecutionOptions(
            abort_on_failure=config.abort_on_failure,
            per_operation_delay_ms=config.per_operation_delay_ms,
            operation_timeout_seconds=config.operation_timeout_seconds,
        ),
        on_progress=on_progress,
    )
    scheduler = RebalanceScheduler(
        store, pipeline, poll_interval_seconds=config.poll_interval_seconds
    )
    return RebalanceService(scheduler=scheduler, pipeline=pipeline, ledger=ledger)
