"""One rebalance run: analyze, gate, plan, execute, record."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from core.engine import ZeroPortfolioError, analyze, require_value
from core.models import AllocationEntry, DriftReport, Holding
from core.targets import RiskProfile, infer_risk_profile
from execution_controller.controller import ExecutionCoordinator
from execution_controller.modes import ExecutionOptions, ExecutionResult, ProgressCallback
from execution_engine.models import OperationPlan
from execution_engine.planner import OperationPlanner
from ledger.ledger import HistoryLedger
from ledger.models import RunRecord, RunStatus, RunTrigger
from scheduler.models import RebalanceSettings

from .collaborators import HoldingsProvider, TargetAllocationProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Assessment:
    holdings: Tuple[Holding, ...]
    risk_profile: RiskProfile
    targets: Tuple[AllocationEntry, ...]
    report: DriftReport

    def to_dict(self):
        return {
            "risk_profile": self.risk_profile.value,
            "targets": [entry.to_dict() for entry in self.targets],
            "report": self.report.to_dict(),
        }


class RebalancePipeline:
    """Runs a single rebalance for one wallet and appends the outcome to history.

    Called by the scheduler while it holds the wallet's run mutex.
    """

    def __init__(
        self,
        holdings: HoldingsProvider,
        targets: TargetAllocationProvider,
        coordinator: ExecutionCoordinator,
        ledger: HistoryLedger,
        planner: Optional[OperationPlanner] = None,
        execution_defaults: Optional[ExecutionOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._holdings = holdings
        self._targets = targets
        self._coordinator = coordinator
        self._ledger = ledger
        self._planner = planner or OperationPlanner()
        self._defaults = execution_defaults or ExecutionOptions()
        self._on_progress = on_progress
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def planner(self) -> OperationPlanner:
        return self._planner

    async def assess(self, wallet_address: str, settings: RebalanceSettings) -> Assessment:
        holdings = tuple(await self._holdings.get_holdings(wallet_address))
        risk_profile = settings.risk_profile or infer_risk_profile(holdings)
        targets = tuple(await self._targets.get_target_allocation(wallet_address, risk_profile))
        report = analyze(holdings, targets, settings.threshold_pct)
        return Assessment(
            holdings=holdings, risk_profile=risk_profile, targets=targets, report=report
        )

    def plan(self, assessment: Assessment, settings: RebalanceSettings) -> OperationPlan:
        return self._planner.plan(
            assessment.report, assessment.holdings, settings.planning_policy()
        )

    def execution_options(self, settings: RebalanceSettings) -> ExecutionOptions:
        options = replace(self._defaults, max_slippage_pct=settings.max_slippage_pct)
        if self._on_progress is not None:
            options = replace(options, on_progress=self._on_progress)
        return options

    async def __call__(
        self, wallet_address: str, settings: RebalanceSettings, trigger: RunTrigger
    ) -> ExecutionResult:
        try:
            assessment = await self.assess(wallet_address, settings)
        except (OSError, ValueError) as exc:
            self._record(wallet_address, trigger, 0.0, (), RunStatus.FAILED, str(exc))
            raise

        report = assessment.report
        try:
            require_value(assessment.holdings)
        except ZeroPortfolioError as exc:
            return self._skip(wallet_address, trigger, report, str(exc))

        if not report.needs_rebalance and trigger != RunTrigger.FORCED:
            return self._skip(
                wallet_address,
                trigger,
                report,
                f"Max drift {report.max_drift}% is below the {report.threshold_pct}% threshold.",
            )

        try:
            plan = self.plan(assessment, settings)
        except ValueError as exc:
            self._record(wallet_address, trigger, report.max_drift, (), RunStatus.FAILED, str(exc))
            raise

        notes = _plan_notes(plan)
        if not plan.operations:
            return self._skip(
                wallet_address,
                trigger,
                report,
                "; ".join(["No actionable operations"] + notes),
            )

        result = await self._coordinator.execute(plan.operations, self.execution_options(settings))
        status = run_status(result)
        if result.failed_operations:
            notes.insert(
                0,
                f"{len(result.failed_operations)} of {len(plan.operations)} operations failed",
            )
        if result.not_attempted:
            notes.append(f"{len(result.not_attempted)} operations not attempted")

        drift_after = await self._drift_after(wallet_address, assessment, result)
        self._record(
            wallet_address,
            trigger,
            report.max_drift,
            result.results,
            status,
            "; ".join(notes) or None,
            drift_after,
        )
        logger.info(
            "Rebalance for %s finished %s: %d succeeded, %d failed",
            wallet_address,
            status.value,
            len(result.operations),
            len(result.failed_operations),
        )
        return result

    async def _drift_after(
        self, wallet_address: str, assessment: Assessment, result: ExecutionResult
    ) -> Optional[float]:
        if not result.operations:
            return assessment.report.max_drift
        try:
            holdings = await self._holdings.get_holdings(wallet_address)
        except (OSError, ValueError):
            logger.warning("Could not refresh holdings for %s after run", wallet_address, exc_info=True)
            return None
        return analyze(holdings, assessment.targets, assessment.report.threshold_pct).max_drift

    def _skip(
        self, wallet_address: str, trigger: RunTrigger, report: DriftReport, reason: str
    ) -> ExecutionResult:
        logger.info("Skipping rebalance for %s: %s", wallet_address, reason)
        self._record(
            wallet_address, trigger, report.max_drift, (), RunStatus.SKIPPED, reason, report.max_drift
        )
        return ExecutionResult(success=True, operations=(), failed_operations=())

    def _record(
        self,
        wallet_address: str,
        trigger: RunTrigger,
        drift_before: float,
        operations,
        status: RunStatus,
        reason: Optional[str],
        drift_after: Optional[float] = None,
    ) -> None:
        self._ledger.append(
            wallet_address,
            RunRecord(
                timestamp=self._clock(),
                trigger=trigger,
                drift_before=drift_before,
                operations=tuple(operations),
                status=status,
                reason=reason,
                drift_after=drift_after,
            ),
        )


def run_status(result: ExecutionResult) -> RunStatus:
    if not result.operations and not result.failed_operations:
        return RunStatus.SKIPPED
    if not result.failed_operations:
        return RunStatus.SUCCESS
    if result.operations:
        return RunStatus.PARTIAL
    return RunStatus.FAILED


def _plan_notes(plan: OperationPlan) -> List[str]:
    notes = [f"{issue.protocol}: {issue.reason}" for issue in plan.errors]
    if plan.dropped:
        notes.append("Preserved staked positions: " + ", ".join(plan.dropped))
    if plan.deferred:
        notes.append("Deferred by operation limit: " + ", ".join(plan.deferred))
    return notes
