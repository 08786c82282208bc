"""Engine configuration and wiring tests."""

import asyncio
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from pydantic import ValidationError

from core.models import AllocationEntry, Holding
from core.targets import RiskProfile, StaticTargetProvider
from rebalancer.collaborators import StaticHoldingsProvider
from rebalancer.config import EngineConfig
from rebalancer.service import build_service
from storage.store import FileStateStore


class EngineConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            config = EngineConfig(_env_file=None)

        self.assertEqual(config.history_cap, 10)
        self.assertEqual(config.poll_interval_seconds, 60.0)
        self.assertEqual(config.per_operation_delay_ms, 500)
        self.assertEqual(config.min_operation_amount, 0.01)
        self.assertIsNone(config.ai_api_key)

    def test_reads_prefixed_environment(self) -> None:
        env = {
            "REBALANCER_HISTORY_CAP": "3",
            "REBALANCER_SIMULATED_FAILING_PROTOCOLS": "Amnis, thala",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = EngineConfig(_env_file=None)

        self.assertEqual(config.history_cap, 3)
        self.assertEqual(config.failing_protocols, ("amnis", "thala"))

    def test_rejects_invalid_values(self) -> None:
        with mock.patch.dict(os.environ, {"REBALANCER_HISTORY_CAP": "0"}, clear=True):
            with self.assertRaises(ValidationError):
                EngineConfig(_env_file=None)


class BuildServiceTests(unittest.TestCase):
    def test_uses_file_store_when_configured(self) -> None:
        with tempfile.TemporaryDirectory() as tempdir:
            path = Path(tempdir) / "state.json"
            config = EngineConfig(_env_file=None, state_path=str(path), history_cap=2)
            service = build_service(config)

            service.update_settings("0xabc", enabled=True)

            self.assertTrue(FileStateStore(path).get_settings("0xabc").enabled)
            self.assertTrue(service.get_status("0xabc").enabled)

    def test_minimum_operation_amount_reaches_planner(self) -> None:
        holdings = StaticHoldingsProvider(
            {
                "0xabc": (
                    Holding("amnis::stAPT", "amnis", 60.0, 600.0),
                    Holding("0x1::aptos_coin::AptosCoin", "native", 40.0, 400.0),
                )
            }
        )
        allocation = (
            AllocationEntry("amnis", 50.0),
            AllocationEntry("thala", 30.0),
            AllocationEntry("native", 20.0),
        )
        targets = StaticTargetProvider({profile: allocation for profile in RiskProfile})
        config = EngineConfig(_env_file=None, min_operation_amount=25)
        service = build_service(config, holdings=holdings, targets=targets)

        _, plan = asyncio.run(service.preview("0xabc"))

        self.assertEqual([op.protocol for op in plan.operations], ["thala"])
        self.assertEqual([issue.protocol for issue in plan.errors], ["native"])


if __name__ == "__main__":
    unittest.main()
