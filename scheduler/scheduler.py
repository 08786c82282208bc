"""Per-wallet rebalance scheduling with a run mutex."""

import asyncio
import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Mapping, Optional, Set, Tuple

from execution_controller.modes import ExecutionResult
from ledger.models import RunTrigger

from .models import (
    RebalanceSettings,
    ScheduleStatus,
    SettingsStore,
    apply_update,
    cooldown_remaining,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 60.0

RunHandler = Callable[[str, RebalanceSettings, RunTrigger], Awaitable[ExecutionResult]]


class ConcurrentRunError(RuntimeError):
    """Raised when a wallet already has a run in progress."""


class CooldownActiveError(RuntimeError):
    """Raised when a manual run is requested before the cooldown has elapsed."""

    def __init__(self, wallet_address: str, remaining: timedelta) -> None:
        minutes = max(1, math.ceil(remaining.total_seconds() / 60))
        super().__init__(
            f"Rebalancing {wallet_address} is in cooldown. Try again in {minutes} minutes "
            "or force the run."
        )
        self.remaining = remaining


class RebalanceScheduler:
    """Owns enable/disable state, run timing and the per-wallet mutex.

    Wallets move between Disabled, Enabled(idle) and Enabled(running).
    A run starts when a poll finds ``now >= next_run_at`` or when a caller
    asks for one directly. Requests for a wallet that is already running
    are rejected, not queued.

    Manual runs also wait out the cooldown of ``interval_hours`` after the
    previous run ends; forced runs do not.
    """

    def __init__(
        self,
        store: SettingsStore,
        run_handler: RunHandler,
        clock: Optional[Callable[[], datetime]] = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._store = store
        self._run_handler = run_handler
        self._clock = clock or _utc_now
        self._poll_interval = poll_interval_seconds
        self._locks: Dict[str, asyncio.Lock] = {}
        self._active: Set[str] = set()
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def active_wallets(self) -> Tuple[str, ...]:
        return tuple(sorted(self._active))

    def load(self) -> None:
        """Register every wallet whose stored settings are enabled."""

        for wallet_address in self._store.list_wallets():
            if self._store.get_settings(wallet_address).enabled:
                self._active.add(wallet_address)

    def settings(self, wallet_address: str) -> RebalanceSettings:
        return self._store.get_settings(wallet_address)

    def update_settings(
        self, wallet_address: str, changes: Mapping[str, object]
    ) -> RebalanceSettings:
        current = self._store.get_settings(wallet_address)
        updated = apply_update(current, changes)
        now = self._clock()

        if updated.enabled and not current.enabled:
            updated = _with_next_run(updated, now)
            logger.info("Enabled auto-rebalance for %s", wallet_address)
        elif not updated.enabled:
            updated = _replace_next_run(updated, None)
            if current.enabled:
                logger.info("Disabled auto-rebalance for %s", wallet_address)
        elif updated.interval_hours != current.interval_hours:
            updated = _with_next_run(updated, now)

        self._store.put_settings(wallet_address, updated)
        if updated.enabled:
            self._active.add(wallet_address)
        else:
            self._active.discard(wallet_address)
        return updated

    def enable(self, wallet_address: str) -> RebalanceSettings:
        return self.update_settings(wallet_address, {"enabled": True})

    def disable(self, wallet_address: str) -> RebalanceSettings:
        return self.update_settings(wallet_address, {"enabled": False})

    def is_running(self, wallet_address: str) -> bool:
        lock = self._locks.get(wallet_address)
        return lock is not None and lock.locked()

    def status(self, wallet_address: str) -> ScheduleStatus:
        settings = self._store.get_settings(wallet_address)
        remaining = cooldown_remaining(settings, self._clock())
        return ScheduleStatus(
            enabled=settings.enabled,
            last_run_at=settings.last_run_at,
            next_run_at=settings.next_run_at,
            running=self.is_running(wallet_address),
            cooldown_remaining_seconds=remaining.total_seconds(),
        )

    async def run(
        self, wallet_address: str, trigger: RunTrigger = RunTrigger.MANUAL
    ) -> ExecutionResult:
        lock = self._locks.setdefault(wallet_address, asyncio.Lock())
        if lock.locked():
            raise ConcurrentRunError(f"A rebalance is already running for {wallet_address}.")
        if trigger == RunTrigger.MANUAL:
            remaining = cooldown_remaining(self._store.get_settings(wallet_address), self._clock())
            if remaining > timedelta(0):
                raise CooldownActiveError(wallet_address, remaining)

        async with lock:
            logger.info("Starting %s rebalance for %s", trigger.value, wallet_address)
            try:
                settings = self._store.get_settings(wallet_address)
                return await self._run_handler(wallet_address, settings, trigger)
            finally:
                self._complete(wallet_address)

    def due_wallets(self, now: Optional[datetime] = None) -> Tuple[str, ...]:
        now = now or self._clock()
        due = []
        for wallet_address in sorted(self._active):
            settings = self._store.get_settings(wallet_address)
            if not settings.enabled or settings.next_run_at is None:
                continue
            if now >= settings.next_run_at and not self.is_running(wallet_address):
                due.append(wallet_address)
        return tuple(due)

    async def tick(self) -> Tuple[str, ...]:
        """Start every due wallet as an independent run; return the wallets run."""

        due = self.due_wallets()
        if due:
            await asyncio.gather(*(self._run_scheduled(wallet) for wallet in due))
        return due

    async def run_forever(self) -> None:
        self._stop_event = asyncio.Event()
        self.load()
        logger.info("Scheduler polling every %ss", self._poll_interval)
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler poll failed; retrying in %ss", self._poll_interval)
            try:
                await asyncio.wait_for(self._stop_event.wait(), self._poll_interval)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    async def _run_scheduled(self, wallet_address: str) -> None:
        try:
            await self.run(wallet_address, RunTrigger.SCHEDULED)
        except ConcurrentRunError:
            logger.info("Skipping scheduled run for %s; already running", wallet_address)
        except Exception:
            logger.exception("Scheduled rebalance failed for %s", wallet_address)

    def _complete(self, wallet_address: str) -> None:
        # Re-read so a disable issued during the run is respected.
        settings = self._store.get_settings(wallet_address)
        now = self._clock()
        completed = replace(settings, last_run_at=now)
        if completed.enabled:
            completed = _with_next_run(completed, now)
        self._store.put_settings(wallet_address, completed)


def _with_next_run(settings: RebalanceSettings, now: datetime) -> RebalanceSettings:
    return _replace_next_run(settings, now + timedelta(hours=settings.interval_hours))


def _replace_next_run(
    settings: RebalanceSettings, next_run_at: Optional[datetime]
) -> RebalanceSettings:
    return replace(settings, next_run_at=next_run_at)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
