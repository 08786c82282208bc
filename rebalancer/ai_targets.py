"""Target allocations recommended by an AI chat-completion endpoint."""

from __future__ import annotations

import asyncio
import json
import logging
import re
import urllib.request
from typing import Any, Callable, List, Optional, Tuple

from core.models import AllocationEntry
from core.targets import RiskProfile, StaticTargetProvider
from execution_engine.models import Protocol

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o-mini"

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON = re.compile(r"\{.*\}", re.DOTALL)


class AIAdapterError(RuntimeError):
    """Raised when the AI provider cannot produce a usable allocation."""


class AITargetProvider:
    """Asks the AI service for an allocation and falls back to the static table.

    The call is blocking ``urllib`` I/O and runs in a worker thread.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout_seconds: float = 10.0,
        fallback: Optional[StaticTargetProvider] = None,
        opener: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._fallback = fallback or StaticTargetProvider()
        self._opener = opener or urllib.request.urlopen

    async def get_target_allocation(
        self, wallet_address: str, risk_profile: RiskProfile
    ) -> Tuple[AllocationEntry, ...]:
        if not self._api_key:
            return await self._fallback.get_target_allocation(wallet_address, risk_profile)
        try:
            content = await asyncio.to_thread(self._request, risk_profile)
            return parse_allocation(content)
        except AIAdapterError as exc:
            logger.warning(
                "AI allocation unavailable for %s, using %s fallback: %s",
                wallet_address,
                risk_profile.value,
                exc,
            )
            return await self._fallback.get_target_allocation(wallet_address, risk_profile)

    def _request(self, risk_profile: RiskProfile) -> str:
        supported = ", ".join(member.spec.name for member in Protocol)
        payload = {
            "model": self._model,
            "temperature": 0.2,
            "messages": [
                {
                    "role": "system",
                    "content": (
                        "You recommend yield allocations across Aptos DeFi protocols. "
                        "Reply with JSON only."
                    ),
                },
                {
                    "role": "user",
                    "content": (
                        f"Recommend a {risk_profile.value} allocation using only these "
                        f"protocols: {supported}.\n"
                        'Respond as {"allocation": [{"protocol": str, "percentage": number, '
                        '"expectedApr": number}]} with percentages summing to 100.'
                    ),
                },
            ],
        }

        request = urllib.request.Request(
            self._endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )

        try:
            with self._opener(request, timeout=self._timeout) as response:
                raw = response.read().decode("utf-8")
        except Exception as exc:  # pragma: no cover - network dependent
            raise AIAdapterError("AI provider request failed.") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise AIAdapterError("AI provider returned invalid JSON.") from exc

        try:
            return data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise AIAdapterError("AI provider returned an unexpected response.") from exc


def parse_allocation(content: str) -> Tuple[AllocationEntry, ...]:
    """Extract an allocation from model output.

    Unknown protocols are dropped and the remainder is scaled to sum to 100.
    """

    match = _FENCED_JSON.search(content) or _BARE_JSON.search(content)
    if match is None:
        raise AIAdapterError("AI response did not contain JSON.")
    try:
        document = json.loads(match.group(1) if match.groups() else match.group(0))
    except json.JSONDecodeError as exc:
        raise AIAdapterError("AI response JSON could not be parsed.") from exc

    items = document.get("allocation") if isinstance(document, dict) else None
    if not isinstance(items, list):
        raise AIAdapterError("AI response has no allocation list.")

    entries: List[AllocationEntry] = []
    for item in items:
        try:
            entry = AllocationEntry.from_dict(
                {
                    "protocol": item["protocol"],
                    "percentage": item["percentage"],
                    "expected_yield": item.get("expectedApr", item.get("expected_yield")),
                }
            )
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning("Ignoring malformed allocation item: %r", item)
            continue
        protocol = Protocol.lookup(entry.protocol)
        if protocol is None or entry.percentage_of_total <= 0:
            logger.warning("Ignoring allocation for unsupported protocol %s", entry.protocol)
            continue
        entries.append(
            AllocationEntry(
                protocol=protocol.spec.name,
                percentage_of_total=entry.percentage_of_total,
                expected_yield=entry.expected_yield,
            )
        )

    total = sum(entry.percentage_of_total for entry in entries)
    if not entries or total <= 0:
        raise AIAdapterError("AI response has no usable allocation entries.")
    if abs(total - 100.0) > 0.01:
        factor = 100.0 / total
        entries = [
            AllocationEntry(
                protocol=entry.protocol,
                percentage_of_total=round(entry.percentage_of_total * factor, 4),
                expected_yield=entry.expected_yield,
            )
            for entry in entries
        ]
    return tuple(entries)
