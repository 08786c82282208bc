"""Operator CLI for the rebalancing engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from core.models import AllocationEntry, Holding
from core.targets import RiskProfile, StaticTargetProvider
from execution_adapter.aptos.adapter import plan_to_payloads
from execution_controller.modes import ProgressEvent
from rebalancer.collaborators import StaticHoldingsProvider
from rebalancer.config import get_config
from rebalancer.logging_setup import configure_logging
from rebalancer.service import RebalanceService, build_service
from scheduler.scheduler import ConcurrentRunError, CooldownActiveError

AUTO_RISK_PROFILE = "auto"


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="rebalancer")
    subparsers = parser.add_subparsers(dest="command", required=True)

    drift_parser = subparsers.add_parser("drift")
    _add_wallet_args(drift_parser)
    drift_parser.set_defaults(func=_drift)

    plan_parser = subparsers.add_parser("plan")
    _add_wallet_args(plan_parser)
    plan_parser.set_defaults(func=_plan)

    simulate_parser = subparsers.add_parser("simulate")
    _add_wallet_args(simulate_parser)
    simulate_parser.set_defaults(func=_simulate)

    run_parser = subparsers.add_parser("run")
    _add_wallet_args(run_parser)
    run_parser.add_argument("--force", action="store_true")
    run_parser.add_argument("--fail-protocol", action="append", default=[])
    run_parser.set_defaults(func=_run)

    settings_parser = subparsers.add_parser("settings")
    settings_sub = settings_parser.add_subparsers(dest="settings_command", required=True)
    settings_show = settings_sub.add_parser("show")
    _add_wallet_args(settings_show)
    settings_show.set_defaults(func=_settings_show)

    settings_update = settings_sub.add_parser("update")
    _add_wallet_args(settings_update)
    settings_update.add_argument("--enabled", type=_parse_bool)
    settings_update.add_argument("--interval-hours", type=float)
    settings_update.add_argument("--threshold", type=float)
    settings_update.add_argument("--slippage", type=float)
    settings_update.add_argument("--preserve-staked", type=_parse_bool)
    settings_update.add_argument("--max-operations", type=int)
    settings_update.add_argument(
        "--risk-profile",
        choices=[item.value for item in RiskProfile] + [AUTO_RISK_PROFILE],
        help=f"'{AUTO_RISK_PROFILE}' infers the profile from holdings",
    )
    settings_update.set_defaults(func=_settings_update)

    status_parser = subparsers.add_parser("status")
    _add_wallet_args(status_parser)
    status_parser.set_defaults(func=_status)

    history_parser = subparsers.add_parser("history")
    _add_wallet_args(history_parser)
    history_parser.add_argument("--limit", type=int)
    history_parser.set_defaults(func=_history)

    tick_parser = subparsers.add_parser("tick")
    _add_store_args(tick_parser)
    tick_parser.set_defaults(func=_tick)

    args = parser.parse_args(argv)
    configure_logging(get_config().log_level)

    try:
        return args.func(args)
    except (ValueError, OSError, ConcurrentRunError, CooldownActiveError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2


def _drift(args: argparse.Namespace) -> int:
    service = _build_service(args)
    assessment = asyncio.run(service.check_drift(args.wallet))
    _emit(assessment.to_dict())
    return 0


def _plan(args: argparse.Namespace) -> int:
    service = _build_service(args)
    assessment, plan = asyncio.run(service.preview(args.wallet))
    _emit({"report": assessment.report.to_dict(), "plan": plan.to_dict()})
    return 0


def _simulate(args: argparse.Namespace) -> int:
    service = _build_service(args)
    plan, dry_run = asyncio.run(service.dry_run(args.wallet))
    _emit(
        {
            "plan": plan.to_dict(),
            "payloads": [asdict(payload) for payload in plan_to_payloads(plan.operations)],
            "dry_run": asdict(dry_run),
        }
    )
    return 0


def _run(args: argparse.Namespace) -> int:
    service = _build_service(args, on_progress=_print_progress)
    result = asyncio.run(service.run_rebalance(args.wallet, force=args.force))
    latest = service.get_history(args.wallet, limit=1)
    output = result.to_dict()
    output["record"] = latest[0].to_dict() if latest else None
    _emit(output)
    return 0


def _settings_show(args: argparse.Namespace) -> int:
    service = _build_service(args)
    _emit(service.get_settings(args.wallet).to_dict())
    return 0


def _settings_update(args: argparse.Namespace) -> int:
    changes: Dict[str, object] = {
        "enabled": args.enabled,
        "interval_hours": args.interval_hours,
        "threshold_pct": args.threshold,
        "max_slippage_pct": args.slippage,
        "preserve_staked_positions": args.preserve_staked,
        "max_operations": args.max_operations,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if args.risk_profile == AUTO_RISK_PROFILE:
        changes["risk_profile"] = None
    elif args.risk_profile is not None:
        changes["risk_profile"] = args.risk_profile
    if not changes:
        raise ValueError("No settings to update.")

    service = _build_service(args)
    _emit(service.update_settings(args.wallet, **changes).to_dict())
    return 0


def _status(args: argparse.Namespace) -> int:
    service = _build_service(args)
    _emit(service.get_status(args.wallet).to_dict())
    return 0


def _history(args: argparse.Namespace) -> int:
    service = _build_service(args)
    records = service.get_history(args.wallet, args.limit)
    _emit([record.to_dict() for record in records])
    return 0


def _tick(args: argparse.Namespace) -> int:
    service = _build_service(args)
    ran = asyncio.run(service.tick())
    _emit({"ran": list(ran)})
    return 0


def _add_store_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--state", help="JSON file holding settings and history")
    parser.add_argument("--holdings-dir", help="Directory of <wallet>.json holdings files")


def _add_wallet_args(parser: argparse.ArgumentParser) -> None:
    _add_store_args(parser)
    parser.add_argument("--wallet", required=True)
    parser.add_argument("--holdings", help="JSON file with this wallet's holdings")
    parser.add_argument("--targets", help="JSON file with a target allocation")


def _build_service(args: argparse.Namespace, on_progress=None) -> RebalanceService:
    overrides: Dict[str, object] = {}
    if getattr(args, "state", None):
        overrides["state_path"] = args.state
    if getattr(args, "holdings_dir", None):
        overrides["holdings_dir"] = args.holdings_dir
    failing = getattr(args, "fail_protocol", None)
    if failing:
        overrides["simulated_failing_protocols"] = ",".join(failing)
    config = get_config().model_copy(update=overrides)

    holdings = None
    if getattr(args, "holdings", None):
        holdings = StaticHoldingsProvider({args.wallet: _load_holdings(args.holdings)})

    targets = None
    if getattr(args, "targets", None):
        allocation = _load_allocation(args.targets)
        targets = StaticTargetProvider({profile: allocation for profile in RiskProfile})

    return build_service(config, holdings=holdings, targets=targets, on_progress=on_progress)


def _load_holdings(path: str) -> tuple:
    data = _load_json(path)
    if not isinstance(data, list):
        raise ValueError("Holdings file must contain a list.")
    return tuple(Holding.from_dict(item) for item in data)


def _load_allocation(path: str) -> tuple:
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("allocation", [])
    if not isinstance(data, list):
        raise ValueError("Allocation file must contain a list.")
    return tuple(AllocationEntry.from_dict(item) for item in data)


def _load_json(path: str):
    if path == "-":
        return json.loads(sys.stdin.read())
    return json.loads(Path(path).read_text())


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on", "1"):
        return True
    if lowered in ("false", "no", "off", "0"):
        return False
    raise argparse.ArgumentTypeError(f"Expected true or false, got {value!r}")


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.completed}/{event.total}] {event.message}", file=sys.stderr)


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    raise SystemExit(main())
