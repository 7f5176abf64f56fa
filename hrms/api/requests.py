from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Body
from pydantic import BaseModel

from hrms.api.auth import get_current_active_user, User
from hrms.guardrails.decorators import require_permission, workflow_errors
from hrms.guardrails.permissions import permission_checker, Permission
from hrms.models.request import Request, RequestCreate, RequestEdit, RequestStatus
from hrms.services.request_service import request_service

router = APIRouter(prefix="/api/requests", tags=["Requests"])

class Decision(BaseModel):
    comment: Optional[str] = None

class Rejection(BaseModel):
    reason: Optional[str] = None

class Cancellation(BaseModel):
    reason: Optional[str] = None

class NewComment(BaseModel):
    content: str

@router.post("", response_model=Request, status_code=201)
@workflow_errors
async def create_request(
    payload: RequestCreate,
    current_user: User = Depends(require_permission(Permission.SUBMIT_REQUEST))
):
    return await request_service.create(current_user.username, payload)

@router.get("/mine", response_model=List[Request])
async def list_my_requests(
    status: Optional[RequestStatus] = None,
    current_user: User = Depends(get_current_active_user)
):
    return await request_service.list_mine(current_user.username, status)

@router.get("/pending", response_model=List[Request])
async def list_pending_for_me(current_user: User = Depends(get_current_active_user)):
    """Requests where it is currently the caller's turn to decide."""
    return await request_service.list_awaiting(current_user.username)

@router.get("/{request_id}", response_model=Request)
@workflow_errors
async def get_request(request_id: str, current_user: User = Depends(get_current_active_user)):
    request = await request_service.get_request(request_id)
    if not permission_checker.can_view_request(current_user, request):
        raise HTTPException(status_code=403, detail="Not allowed to view this request")
    return request

@router.put("/{request_id}/approve", response_model=Request)
@workflow_errors
async def approve_request(
    request_id: str,
    decision: Optional[Decision] = Body(None),
    current_user: User = Depends(require_permission(Permission.APPROVE_REQUEST))
):
    return await request_service.approve(request_id, current_user.username, decision.comment if decision else None)

@router.put("/{request_id}/reject", response_model=Request)
@workflow_errors
async def reject_request(
    request_id: str,
    rejection: Rejection = Body(...),
    current_user: User = Depends(require_permission(Permission.APPROVE_REQUEST))
):
    return await request_service.reject(request_id, current_user.username, rejection.reason)

@router.put("/{request_id}/request-changes", response_model=Request)
@workflow_errors
async def request_changes(
    request_id: str,
    decision: Decision = Body(...),
    current_user: User = Depends(require_permission(Permission.APPROVE_REQUEST))
):
    return await request_service.request_changes(request_id, current_user.username, decision.comment)

@router.put("/{request_id}/resubmit", response_model=Request)
@workflow_errors
async def resubmit_request(
    request_id: str,
    changes: Optional[RequestEdit] = Body(None),
    current_user: User = Depends(get_current_active_user)
):
    return await request_service.resubmit(request_id, current_user.username, changes)

@router.put("/{request_id}/cancel", response_model=Request)
@workflow_errors
async def cancel_request(
    request_id: str,
    cancellation: Optional[Cancellation] = Body(None),
    current_user: User = Depends(get_current_active_user)
):
    return await request_service.cancel(request_id, current_user.username, cancellation.reason if cancellation else None)

@router.post("/{request_id}/comments", response_model=Request, status_code=201)
@workflow_errors
async def add_comment(
    request_id: str,
    comment: NewComment,
    current_user: User = Depends(get_current_active_user)
):
    return await request_service.add_comment(request_id, current_user.username, comment.content)
