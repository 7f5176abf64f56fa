import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Body

from hrms.api.auth import get_admin_user, User
from hrms.database import db
from hrms.models.base import utcnow
from hrms.models.request import RequestType
from hrms.models.workflow import Workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/workflows", tags=["Workflows"])

async def _check_unique_active(workflow: Workflow, exclude_id: Optional[str] = None):
    """Only one active workflow per request type and department scope."""
    if not workflow.is_active:
        return
    query = {
        "request_type": workflow.request_type.value,
        "is_active": True,
    }
    if workflow.applicable_departments:
        # Any shared department makes the lookup ambiguous.
        query["applicable_departments"] = {"$in": workflow.applicable_departments}
    else:
        query["applicable_departments"] = {"$size": 0}
    for existing in await db.workflows.find(query):
        if existing.id != exclude_id:
            raise HTTPException(
                status_code=400,
                detail=f"An active workflow for {workflow.request_type.value} already exists ({existing.name})"
            )

@router.get("", response_model=List[Workflow])
async def list_workflows(
    request_type: Optional[RequestType] = None,
    current_user: User = Depends(get_admin_user)
):
    query = {"request_type": request_type.value} if request_type else {}
    return await db.workflows.find(query)

@router.post("", response_model=Workflow, status_code=201)
async def create_workflow(
    workflow: Workflow,
    current_user: User = Depends(get_admin_user)
):
    await _check_unique_active(workflow)
    workflow.id = None
    workflow.created_by = current_user.username
    workflow.updated_by = current_user.username
    await db.workflows.create(workflow)
    logger.info(f"Workflow '{workflow.name}' for {workflow.request_type.value} created by {current_user.username}")
    return workflow

@router.put("/{workflow_id}", response_model=Workflow)
async def update_workflow(
    workflow_id: str,
    workflow: Workflow = Body(...),
    current_user: User = Depends(get_admin_user)
):
    existing = await db.workflows.get(workflow_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Workflow not found")
    await _check_unique_active(workflow, exclude_id=workflow_id)

    update_data = workflow.to_mongo()
    update_data.pop("_id", None)
    update_data.pop("created_by", None)
    update_data.pop("created_at", None)
    update_data["updated_by"] = current_user.username
    update_data["updated_at"] = utcnow()
    return await db.workflows.update(workflow_id, update_data)

@router.delete("/{workflow_id}")
async def delete_workflow(workflow_id: str, current_user: User = Depends(get_admin_user)):
    deleted = await db.workflows.delete(workflow_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Workflow not found")
    logger.info(f"Workflow {workflow_id} deleted by {current_user.username}")
    return {"message": "Workflow deleted"}
