"""Persistence for per-wallet settings and run history."""

from pathlib import Path
from typing import Dict, Tuple
import json

from ledger.models import RunRecord
from scheduler.models import RebalanceSettings


class InMemoryStateStore:
    def __init__(self) -> None:
        self._settings: Dict[str, RebalanceSettings] = {}
        self._history: Dict[str, Tuple[RunRecord, ...]] = {}

    def get_settings(self, wallet_address: str) -> RebalanceSettings:
        return self._settings.get(wallet_address, RebalanceSettings())

    def put_settings(self, wallet_address: str, settings: RebalanceSettings) -> None:
        self._settings[wallet_address] = settings

    def list_wallets(self) -> Tuple[str, ...]:
        return tuple(sorted(self._settings))

    def load_history(self, wallet_address: str) -> Tuple[RunRecord, ...]:
        return self._history.get(wallet_address, ())

    def save_history(self, wallet_address: str, records: Tuple[RunRecord, ...]) -> None:
        self._history[wallet_address] = tuple(records)


class FileStateStore:
    """JSON document keyed by wallet address.

    Layout: ``{"<wallet>": {"settings": {...}, "history": [...]}}``.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get_settings(self, wallet_address: str) -> RebalanceSettings:
        entry = self._read_all().get(wallet_address, {})
        settings = entry.get("settings")
        if settings is None:
            return RebalanceSettings()
        return RebalanceSettings.from_dict(settings)

    def put_settings(self, wallet_address: str, settings: RebalanceSettings) -> None:
        documents = self._read_all()
        documents.setdefault(wallet_address, {})["settings"] = settings.to_dict()
        self._write_all(documents)

    def list_wallets(self) -> Tuple[str, ...]:
        return tuple(
            sorted(wallet for wallet, entry in self._read_all().items() if "settings" in entry)
        )

    def load_history(self, wallet_address: str) -> Tuple[RunRecord, ...]:
        entry = self._read_all().get(wallet_address, {})
        return tuple(RunRecord.from_dict(item) for item in entry.get("history", []))

    def save_history(self, wallet_address: str, records: Tuple[RunRecord, ...]) -> None:
        documents = self._read_all()
        documents.setdefault(wallet_address, {})["history"] = [
            record.to_dict() for record in records
        ]
        self._write_all(documents)

    def _read_all(self) -> Dict[str, Dict[str, object]]:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text())

    def _write_all(self, documents: Dict[str, Dict[str, object]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(documents, indent=2, sort_keys=True))
