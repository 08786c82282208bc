"""Local-only FastAPI shell for the rebalancing engine."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from rebalancer.config import get_config
from rebalancer.logging_setup import configure_logging
from rebalancer.service import RebalanceService, build_service
from scheduler.scheduler import ConcurrentRunError, CooldownActiveError

logger = logging.getLogger(__name__)

_SERVICE: Optional[RebalanceService] = None


class RebalanceRequest(BaseModel):
    force: bool = False


class SettingsUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: Optional[bool] = None
    interval_hours: Optional[float] = None
    threshold_pct: Optional[float] = None
    max_slippage_pct: Optional[float] = None
    preserve_staked_positions: Optional[bool] = None
    max_operations: Optional[int] = None
    risk_profile: Optional[str] = None


def get_service() -> RebalanceService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = build_service()
    return _SERVICE


def set_service(service: Optional[RebalanceService]) -> None:
    global _SERVICE
    _SERVICE = service


@asynccontextmanager
async def _lifespan(app: FastAPI):
    config = get_config()
    configure_logging(config.log_level)
    task = None
    if config.scheduler_enabled:
        scheduler = get_service().scheduler
        task = asyncio.create_task(scheduler.run_forever())
        logger.info("Background scheduler started")
    try:
        yield
    finally:
        if task is not None:
            get_service().scheduler.stop()
            await task


app = FastAPI(
    title="Portfolio Rebalancer",
    description="Local-first rebalancing engine API",
    lifespan=_lifespan,
)


@app.middleware("http")
async def _local_only(request: Request, call_next):
    client = request.client
    if client is not None:
        host = client.host
        if host not in {"127.0.0.1", "::1", "testclient"}:
            return JSONResponse({"error": "Remote access disabled."}, status_code=403)
    return await call_next(request)


async def _handle_conflict(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=409)


async def _handle_errors(request: Request, exc: Exception):
    return JSONResponse({"error": str(exc)}, status_code=400)


for _exc_class in (ConcurrentRunError, CooldownActiveError):
    app.add_exception_handler(_exc_class, _handle_conflict)
for _exc_class in (ValueError, KeyError):
    app.add_exception_handler(_exc_class, _handle_errors)


@app.get("/api/wallets/{address}/drift")
async def wallet_drift(address: str):
    assessment = await get_service().check_drift(address)
    return assessment.to_dict()


@app.get("/api/wallets/{address}/plan")
async def wallet_plan(address: str):
    assessment, plan = await get_service().preview(address)
    return {"report": assessment.report.to_dict(), "plan": plan.to_dict()}


@app.post("/api/wallets/{address}/rebalance")
async def wallet_rebalance(address: str, payload: Optional[RebalanceRequest] = None):
    service = get_service()
    force = payload.force if payload is not None else False
    result = await service.run_rebalance(address, force=force)
    latest = service.get_history(address, limit=1)
    output = result.to_dict()
    output["record"] = latest[0].to_dict() if latest else None
    return output


@app.get("/api/wallets/{address}/settings")
async def wallet_settings(address: str):
    return get_service().get_settings(address).to_dict()


@app.patch("/api/wallets/{address}/settings")
async def update_wallet_settings(address: str, payload: SettingsUpdateRequest):
    changes = payload.model_dump(exclude_unset=True)
    settings = get_service().update_settings(address, **changes)
    return settings.to_dict()


@app.get("/api/wallets/{address}/status")
async def wallet_status(address: str):
    return get_service().get_status(address).to_dict()


@app.get("/api/wallets/{address}/history")
async def wallet_history(address: str, limit: Optional[int] = None):
    records = get_service().get_history(address, limit)
    return {"records": [record.to_dict() for record in records]}
