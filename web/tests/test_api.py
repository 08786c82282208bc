"""Contract tests for the rebalancer web API."""

import unittest
from datetime import datetime, timezone

try:
    from fastapi.testclient import TestClient
except ImportError:  # pragma: no cover - optional dependency
    TestClient = None

from core.models import AllocationEntry, Holding
from core.targets import RiskProfile, StaticTargetProvider
from execution_adapter.aptos.simulator import SimulatedChainClient
from execution_controller.controller import ExecutionCoordinator
from execution_controller.modes import ExecutionOptions
from ledger.ledger import HistoryLedger
from rebalancer.collaborators import StaticHoldingsProvider
from rebalancer.pipeline import RebalancePipeline
from rebalancer.service import RebalanceService
from scheduler.scheduler import ConcurrentRunError, RebalanceScheduler
from storage.store import InMemoryStateStore
from web import app as web_app

WALLET = "0xabc"
NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)
HOLDINGS = (
    Holding("amnis::stAPT", "amnis", 60.0, 600.0),
    Holding("0x1::aptos_coin::AptosCoin", "native", 40.0, 400.0),
)
TARGETS = (
    AllocationEntry("amnis", 50.0),
    AllocationEntry("thala", 30.0),
    AllocationEntry("native", 20.0),
)


def _components():
    store = InMemoryStateStore()
    ledger = HistoryLedger(store)
    pipeline = RebalancePipeline(
        holdings=StaticHoldingsProvider({WALLET: HOLDINGS}),
        targets=StaticTargetProvider({profile: TARGETS for profile in RiskProfile}),
        coordinator=ExecutionCoordinator(SimulatedChainClient()),
        ledger=ledger,
        execution_defaults=ExecutionOptions(per_operation_delay_ms=0),
        clock=lambda: NOW,
    )
    scheduler = RebalanceScheduler(store, pipeline, clock=lambda: NOW)
    return scheduler, pipeline, ledger


def _service() -> RebalanceService:
    return RebalanceService(*_components())


class BusyService(RebalanceService):
    async def run_rebalance(self, wallet_address: str, force: bool = False):
        raise ConcurrentRunError(f"A rebalance is already running for {wallet_address}.")


@unittest.skipIf(TestClient is None, "FastAPI not available")
class WebApiTests(unittest.TestCase):
    def setUp(self) -> None:
        web_app.set_service(_service())
        self.addCleanup(web_app.set_service, None)
        self.client = TestClient(web_app.app)

    def test_drift(self) -> None:
        response = self.client.get(f"/api/wallets/{WALLET}/drift")

        self.assertEqual(response.status_code, 200)
        report = response.json()["report"]
        self.assertEqual(report["max_drift"], 30.0)
        self.assertTrue(report["needs_rebalance"])

    def test_plan_preview(self) -> None:
        response = self.client.get(f"/api/wallets/{WALLET}/plan")

        self.assertEqual(response.status_code, 200)
        operations = response.json()["plan"]["operations"]
        self.assertEqual([op["protocol"] for op in operations], ["native", "thala"])

    def test_rebalance_records_history(self) -> None:
        response = self.client.post(f"/api/wallets/{WALLET}/rebalance", json={"force": False})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["record"]["status"], "success")
        self.assertEqual(payload["record"]["trigger"], "manual")

        history = self.client.get(f"/api/wallets/{WALLET}/history", params={"limit": 5}).json()
        self.assertEqual(len(history["records"]), 1)

        status = self.client.get(f"/api/wallets/{WALLET}/status").json()
        self.assertFalse(status["running"])
        self.assertEqual(status["last_run_at"], NOW.isoformat())

    def test_settings_patch_and_get(self) -> None:
        response = self.client.patch(
            f"/api/wallets/{WALLET}/settings",
            json={"enabled": True, "interval_hours": 12, "risk_profile": "conservative"},
        )

        self.assertEqual(response.status_code, 200)
        settings = self.client.get(f"/api/wallets/{WALLET}/settings").json()
        self.assertTrue(settings["enabled"])
        self.assertEqual(settings["interval_hours"], 12.0)
        self.assertEqual(settings["risk_profile"], "conservative")
        self.assertIsNotNone(settings["next_run_at"])

    def test_invalid_settings_return_400(self) -> None:
        response = self.client.patch(
            f"/api/wallets/{WALLET}/settings", json={"threshold_pct": 50}
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("threshold_pct", response.json()["error"])
        settings = self.client.get(f"/api/wallets/{WALLET}/settings").json()
        self.assertEqual(settings["threshold_pct"], 5.0)

    def test_unknown_settings_field_is_rejected(self) -> None:
        response = self.client.patch(
            f"/api/wallets/{WALLET}/settings", json={"next_run_at": "2024-01-01T00:00:00"}
        )

        self.assertEqual(response.status_code, 422)

    def test_manual_rebalance_in_cooldown_returns_409(self) -> None:
        self.assertEqual(self.client.post(f"/api/wallets/{WALLET}/rebalance").status_code, 200)

        response = self.client.post(f"/api/wallets/{WALLET}/rebalance")

        self.assertEqual(response.status_code, 409)
        self.assertIn("cooldown", response.json()["error"])
        status = self.client.get(f"/api/wallets/{WALLET}/status").json()
        self.assertEqual(status["cooldown_remaining_seconds"], 24 * 3600.0)

        forced = self.client.post(f"/api/wallets/{WALLET}/rebalance", json={"force": True})
        self.assertEqual(forced.status_code, 200)
        self.assertEqual(forced.json()["record"]["trigger"], "forced")

    def test_concurrent_run_returns_409(self) -> None:
        web_app.set_service(BusyService(*_components()))

        response = self.client.post(f"/api/wallets/{WALLET}/rebalance")

        self.assertEqual(response.status_code, 409)
        self.assertIn("already running", response.json()["error"])


if __name__ == "__main__":
    unittest.main()
