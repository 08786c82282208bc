"""AI allocation parsing and fallback tests."""

import io
import json
import unittest

from core.targets import FALLBACK_ALLOCATIONS, RiskProfile
from rebalancer.ai_targets import AIAdapterError, AITargetProvider, parse_allocation


def _opener_returning(content: str):
    body = json.dumps({"choices": [{"message": {"content": content}}]}).encode("utf-8")
    requests = []

    def opener(request, timeout):
        requests.append(request)
        return io.BytesIO(body)

    opener.requests = requests
    return opener


def _failing_opener(request, timeout):
    raise OSError("connection refused")


class ParseAllocationTests(unittest.TestCase):
    def test_reads_fenced_json(self) -> None:
        content = (
            "Here you go:\n```json\n"
            '{"allocation": [{"protocol": "Thala", "percentage": 60, "expectedApr": 8.2},'
            ' {"protocol": "echo", "percentage": 40}]}\n```'
        )

        entries = parse_allocation(content)

        self.assertEqual([(e.protocol, e.percentage_of_total) for e in entries], [("thala", 60.0), ("echo", 40.0)])
        self.assertEqual(entries[0].expected_yield, 8.2)

    def test_drops_unknown_protocols_and_rescales(self) -> None:
        content = json.dumps(
            {
                "allocation": [
                    {"protocol": "amnis", "percentage": 30},
                    {"protocol": "moonfarm", "percentage": 40},
                    {"protocol": "thala", "percentage": 30},
                ]
            }
        )

        entries = parse_allocation(content)

        self.assertEqual([e.protocol for e in entries], ["amnis", "thala"])
        self.assertAlmostEqual(sum(e.percentage_of_total for e in entries), 100.0)

    def test_rejects_text_without_allocation(self) -> None:
        for content in ("no json here", '{"title": "x"}', '{"allocation": [{"protocol": "moonfarm", "percentage": 100}]}'):
            with self.subTest(content=content):
                with self.assertRaises(AIAdapterError):
                    parse_allocation(content)


class AITargetProviderTests(unittest.IsolatedAsyncioTestCase):
    async def test_without_key_uses_fallback_table(self) -> None:
        provider = AITargetProvider(api_key=None, opener=_failing_opener)

        entries = await provider.get_target_allocation("0xabc", RiskProfile.CONSERVATIVE)

        self.assertEqual(entries, FALLBACK_ALLOCATIONS[RiskProfile.CONSERVATIVE])

    async def test_uses_model_allocation(self) -> None:
        opener = _opener_returning('{"allocation": [{"protocol": "aries", "percentage": 100}]}')
        provider = AITargetProvider(api_key="sk-test", opener=opener)

        entries = await provider.get_target_allocation("0xabc", RiskProfile.AGGRESSIVE)

        self.assertEqual([e.protocol for e in entries], ["aries"])
        request = opener.requests[0]
        self.assertEqual(request.get_header("Authorization"), "Bearer sk-test")
        self.assertIn(b"aggressive", request.data)

    async def test_request_failure_falls_back(self) -> None:
        provider = AITargetProvider(api_key="sk-test", opener=_failing_opener)

        with self.assertLogs("rebalancer.ai_targets", level="WARNING"):
            entries = await provider.get_target_allocation("0xabc", RiskProfile.BALANCED)

        self.assertEqual(entries, FALLBACK_ALLOCATIONS[RiskProfile.BALANCED])


if __name__ == "__main__":
    unittest.main()
