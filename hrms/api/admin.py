import logging
from typing import Dict, Any

from fastapi import APIRouter, Depends, HTTPException, Body
from pydantic import BaseModel, ValidationError

from hrms.api.auth import get_admin_user, User
from hrms.database import db
from hrms.guardrails.decorators import workflow_errors
from hrms.models.audit import Actor, ActionType
from hrms.models.config import SystemConfig
from hrms.models.request import Request, RequestStatus
from hrms.services.absence_marker import absence_marker
from hrms.services.config_provider import config_provider
from hrms.services.request_service import request_service
from hrms.services.sla_monitor import sla_monitor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

class AdminDecision(BaseModel):
    comment: str

class OverrideDecision(BaseModel):
    new_status: RequestStatus
    comment: str

@router.put("/requests/{request_id}/force-approve", response_model=Request)
@workflow_errors
async def force_approve(
    request_id: str,
    decision: AdminDecision,
    current_user: User = Depends(get_admin_user)
):
    return await request_service.force_approve(request_id, current_user.username, decision.comment)

@router.put("/requests/{request_id}/force-reject", response_model=Request)
@workflow_errors
async def force_reject(
    request_id: str,
    decision: AdminDecision,
    current_user: User = Depends(get_admin_user)
):
    return await request_service.force_reject(request_id, current_user.username, decision.comment)

@router.put("/requests/{request_id}/override", response_model=Request)
@workflow_errors
async def override_decision(
    request_id: str,
    decision: OverrideDecision,
    current_user: User = Depends(get_admin_user)
):
    return await request_service.override(request_id, current_user.username, decision.new_status, decision.comment)

@router.get("/config", response_model=SystemConfig)
async def get_system_config(current_user: User = Depends(get_admin_user)):
    return await config_provider.get()

@router.put("/config", response_model=SystemConfig)
async def update_system_config(
    update_data: Dict[str, Any] = Body(...),
    current_user: User = Depends(get_admin_user)
):
    update_data = {k: v for k, v in update_data.items() if k not in ("_id", "id", "version", "config_type")}
    try:
        config = await config_provider.update(update_data, current_user.username, current_user.full_name)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "code": "VALIDATION_ERROR"})

    await db.audit.log_action(
        Actor(id=current_user.username, name=current_user.full_name or current_user.username, type="USER"),
        ActionType.CONFIG_UPDATED,
        f"System config updated to version {config.version}",
        metadata={"fields": sorted(update_data.keys())}
    )
    return config

@router.post("/jobs/sla-sweep")
async def run_sla_sweep(current_user: User = Depends(get_admin_user)):
    logger.info(f"Manual SLA sweep triggered by {current_user.username}")
    return await sla_monitor.sweep()

@router.post("/jobs/mark-absent")
async def run_mark_absent(force: bool = False, current_user: User = Depends(get_admin_user)):
    logger.info(f"Manual absence marking triggered by {current_user.username}")
    marked = await absence_marker.run(force=force)
    return {"marked_count": len(marked), "user_ids": marked}
