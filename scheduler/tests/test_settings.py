"""Settings update and validation tests."""

import unittest

from core.targets import RiskProfile
from scheduler.models import RebalanceSettings, SettingsValidationError, apply_update


class ApplyUpdateTests(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = RebalanceSettings()

        self.assertFalse(settings.enabled)
        self.assertEqual(settings.interval_hours, 24.0)
        self.assertEqual(settings.threshold_pct, 5.0)
        self.assertEqual(settings.max_slippage_pct, 2.0)
        self.assertTrue(settings.preserve_staked_positions)
        self.assertEqual(settings.max_operations, 6)

    def test_partial_update_keeps_other_fields(self) -> None:
        updated = apply_update(RebalanceSettings(), {"threshold_pct": 10, "risk_profile": "aggressive"})

        self.assertEqual(updated.threshold_pct, 10.0)
        self.assertEqual(updated.risk_profile, RiskProfile.AGGRESSIVE)
        self.assertEqual(updated.interval_hours, 24.0)

    def test_risk_profile_can_be_cleared(self) -> None:
        settings = RebalanceSettings(risk_profile=RiskProfile.BALANCED)

        self.assertIsNone(apply_update(settings, {"risk_profile": None}).risk_profile)

    def test_out_of_range_values_are_rejected(self) -> None:
        cases = (
            {"threshold_pct": 0.5},
            {"threshold_pct": 21},
            {"max_slippage_pct": 0.05},
            {"max_slippage_pct": 6},
            {"interval_hours": 0.5},
            {"max_operations": 11},
            {"max_operations": 2.5},
            {"enabled": "yes"},
        )
        for changes in cases:
            with self.subTest(changes=changes):
                with self.assertRaises(SettingsValidationError):
                    apply_update(RebalanceSettings(), changes)

    def test_unknown_fields_are_rejected(self) -> None:
        with self.assertRaises(SettingsValidationError):
            apply_update(RebalanceSettings(), {"last_run_at": "2024-01-01T00:00:00"})

    def test_unknown_risk_profile_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            apply_update(RebalanceSettings(), {"risk_profile": "reckless"})

    def test_planning_policy_reflects_settings(self) -> None:
        policy = RebalanceSettings(preserve_staked_positions=False, max_operations=3).planning_policy()

        self.assertFalse(policy.preserve_staked_positions)
        self.assertEqual(policy.max_operations, 3)


if __name__ == "__main__":
    unittest.main()
