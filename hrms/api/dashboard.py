from typing import Optional

from fastapi import APIRouter, Depends

from hrms.api.auth import User
from hrms.guardrails.decorators import require_permission
from hrms.guardrails.permissions import Permission
from hrms.models.user import Role
from hrms.monitoring.metrics import request_metrics
from hrms.services.sla_monitor import sla_monitor

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

@router.get("/sla")
async def get_sla_stats(current_user: User = Depends(require_permission(Permission.VIEW_DASHBOARD))):
    """Requests under SLA tracking, overdue, escalated and due within 24h."""
    return await sla_monitor.get_sla_stats()

@router.get("/requests/stats")
async def get_request_stats(
    department_id: Optional[str] = None,
    current_user: User = Depends(require_permission(Permission.VIEW_DASHBOARD))
):
    # Managers only see their own department.
    if current_user.role != Role.ADMIN.value:
        department_id = current_user.department_id
    return await request_metrics.get_request_stats(department_id)
