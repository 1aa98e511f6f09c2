"""Sync management endpoints"""
from fastapi import APIRouter, Body, HTTPException
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from jirabridge.config import settings
from jirabridge.scheduler import SyncAlreadyRunning, scheduler
from jirabridge.trigger import parse_direction, parse_since

router = APIRouter(prefix="/api/sync", tags=["sync"])


class SyncTriggerRequest(BaseModel):
    # ISO date or datetime; missing/invalid -> the default lookback window
    since: Optional[str] = None
    # source-to-target | target-to-source | both (default)
    direction: Optional[str] = None


class SyncUnitResponse(BaseModel):
    repository: str
    component: str


@router.post("/trigger")
def trigger_sync(request: Optional[SyncTriggerRequest] = Body(None)) -> Dict[str, Any]:
    """Run one batch over every configured unit and return its report"""
    request = request or SyncTriggerRequest()
    since = parse_since(request.since, settings.default_lookback_days)
    direction = parse_direction(request.direction)
    try:
        return scheduler.run_now(since=since, direction=direction)
    except SyncAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/last-report")
def last_report() -> Dict[str, Any]:
    """Report of the most recent run (scheduled or manual)"""
    if scheduler.last_report is None:
        raise HTTPException(status_code=404, detail="No sync has run yet")
    return scheduler.last_report


@router.get("/units", response_model=List[SyncUnitResponse])
def list_units():
    """Configured repository/component pairs"""
    try:
        pairs = settings.repo_components()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [SyncUnitResponse(repository=r, component=c) for r, c in pairs]
