from .models import (
    RebalanceSettings,
    ScheduleStatus,
    SettingsStore,
    SettingsValidationError,
    apply_update,
    cooldown_remaining,
    validate_settings,
)
from .scheduler import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    ConcurrentRunError,
    CooldownActiveError,
    RebalanceScheduler,
    RunHandler,
)

__all__ = [
    "ConcurrentRunError",
    "CooldownActiveError",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "RebalanceScheduler",
    "RebalanceSettings",
    "RunHandler",
    "ScheduleStatus",
    "SettingsStore",
    "SettingsValidationError",
    "apply_update",
    "cooldown_remaining",
    "validate_settings",
]
