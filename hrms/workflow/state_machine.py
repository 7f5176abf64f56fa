"""
Approval state machine.

Pure functions over a Request. Turn order is derived from the per-step
statuses in `approval_flow` on every call; nothing here touches storage, so
callers load the request, apply one transition and persist it with a
versioned write.

A level is cleared once every Approver-role step on it is Approved. Reviewer
and Notified steps never gate progression.
"""
import logging
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from hrms.models.base import utcnow
from hrms.models.request import (
    Request, RequestStatus, ApprovalStep, StepRole, StepStatus, HistoryEntry,
    TERMINAL_STATUSES, OPEN_STATUSES,
)
from hrms.workflow.errors import (
    NotYourTurn, RequestNotPending, RequestAlreadyFinalized, MissingReason,
    NotAuthorized, InvalidTransition,
)

logger = logging.getLogger(__name__)

FORCE_APPROVE_PREFIX = "[Admin Force Approve]"
FORCE_REJECT_PREFIX = "[Admin Force Reject]"
OVERRIDE_PREFIX = "[Admin Override]"

# Statuses an admin may force-approve / force-reject from.
FORCEABLE_STATUSES = (
    RequestStatus.PENDING,
    RequestStatus.MANAGER_APPROVED,
    RequestStatus.NEEDS_REVIEW,
)
# Finalized decisions an admin may override.
OVERRIDABLE_STATUSES = (RequestStatus.APPROVED, RequestStatus.REJECTED)
OVERRIDE_TARGETS = (RequestStatus.PENDING, RequestStatus.APPROVED)


class Transition(BaseModel):
    """Outcome of one state change, used by the caller to fan out notifications."""
    action: str
    from_status: RequestStatus
    to_status: RequestStatus
    final: bool = False
    notify_submitter: bool = False
    # Approvers who now have to act.
    next_approver_ids: List[str] = []
    # Approvers who only need to be told.
    informed_ids: List[str] = []


def _require_text(text: Optional[str], action: str) -> str:
    if text is None or not text.strip():
        raise MissingReason(action)
    return text.strip()


def _pending_steps_for(request: Request, user_id: str) -> List[ApprovalStep]:
    return [
        s for s in request.approval_flow
        if s.approver_id == user_id
        and s.role == StepRole.APPROVER
        and s.status == StepStatus.PENDING
    ]


def is_user_turn(request: Request, user_id: str) -> bool:
    """
    True iff the user holds a Pending Approver step and every Approver step on
    a strictly lower level is Approved.
    """
    own = _pending_steps_for(request, user_id)
    if not own:
        return False
    level = min(s.level for s in own)
    return all(
        s.status == StepStatus.APPROVED
        for s in request.approver_steps()
        if s.level < level
    )


def current_level(request: Request) -> Optional[int]:
    """Lowest level that still has an Approver step not yet Approved."""
    levels = sorted({s.level for s in request.approver_steps() if s.status != StepStatus.APPROVED})
    return levels[0] if levels else None


def actionable_steps(request: Request) -> List[ApprovalStep]:
    """Pending Approver steps on the current level (co-approvers share a level)."""
    level = current_level(request)
    if level is None:
        return []
    return [
        s for s in request.approver_steps()
        if s.level == level and s.status == StepStatus.PENDING
    ]


def pending_approver_ids(request: Request) -> List[str]:
    return _unique(s.approver_id for s in actionable_steps(request))


def _unique(ids) -> List[str]:
    seen = []
    for i in ids:
        if i not in seen:
            seen.append(i)
    return seen


def _acting_step(request: Request, user_id: str) -> ApprovalStep:
    """Validate that the user may act now and return the step they act on."""
    if request.status in TERMINAL_STATUSES:
        raise RequestAlreadyFinalized(request.request_id, request.status.value)
    if request.status not in OPEN_STATUSES:
        raise RequestNotPending(request.request_id, request.status.value)

    if not any(s.approver_id == user_id and s.role == StepRole.APPROVER for s in request.approval_flow):
        raise NotAuthorized(f"User {user_id} is not an approver of request {request.request_id}")

    if not is_user_turn(request, user_id):
        raise NotYourTurn(request.request_id, user_id)

    own = _pending_steps_for(request, user_id)
    level = min(s.level for s in own)
    return next(s for s in own if s.level == level)


def approve(request: Request, user_id: str, comment: Optional[str] = None, now: Optional[datetime] = None) -> Transition:
    now = now or utcnow()
    step = _acting_step(request, user_id)
    from_status = request.status

    step.status = StepStatus.APPROVED
    step.comment = comment or None
    step.action_at = now
    step.is_read = True

    if all(s.status == StepStatus.APPROVED for s in request.approver_steps()):
        request.status = RequestStatus.APPROVED
        return Transition(
            action="approve", from_status=from_status, to_status=request.status,
            final=True, notify_submitter=True,
        )

    request.status = RequestStatus.MANAGER_APPROVED
    next_level = current_level(request)
    # Co-approvers still pending on the same level were already notified.
    next_ids = pending_approver_ids(request) if next_level != step.level else []
    return Transition(
        action="approve", from_status=from_status, to_status=request.status,
        next_approver_ids=next_ids,
    )


def reject(request: Request, user_id: str, reason: Optional[str], now: Optional[datetime] = None) -> Transition:
    now = now or utcnow()
    step = _acting_step(request, user_id)
    reason = _require_text(reason, "reject")
    from_status = request.status

    step.status = StepStatus.REJECTED
    step.comment = reason
    step.action_at = now
    step.is_read = True
    request.status = RequestStatus.REJECTED

    return Transition(
        action="reject", from_status=from_status, to_status=request.status,
        final=True, notify_submitter=True,
    )


def request_changes(request: Request, user_id: str, comment: Optional[str], now: Optional[datetime] = None) -> Transition:
    now = now or utcnow()
    step = _acting_step(request, user_id)
    comment = _require_text(comment, "request changes")
    from_status = request.status

    step.status = StepStatus.NEEDS_REVIEW
    step.comment = comment
    step.action_at = now
    step.is_read = True
    request.status = RequestStatus.NEEDS_REVIEW

    return Transition(
        action="request_changes", from_status=from_status, to_status=request.status,
        notify_submitter=True,
    )


def resubmit(request: Request, submitter_id: str, now: Optional[datetime] = None) -> Transition:
    """
    Send a NeedsReview request back to the step that flagged it. Levels already
    Approved stay Approved.
    """
    if request.submitted_by != submitter_id:
        raise NotAuthorized(f"Only the submitter can resubmit request {request.request_id}")
    if request.status in TERMINAL_STATUSES:
        raise RequestAlreadyFinalized(request.request_id, request.status.value)
    if request.status != RequestStatus.NEEDS_REVIEW:
        raise InvalidTransition(f"Request {request.request_id} is {request.status.value}; only NeedsReview requests can be resubmitted")

    from_status = request.status
    reset_ids = []
    for step in request.approval_flow:
        if step.status == StepStatus.NEEDS_REVIEW:
            step.status = StepStatus.PENDING
            step.action_at = None
            step.is_read = False
            reset_ids.append(step.approver_id)

    request.status = RequestStatus.PENDING
    request.sender_status.is_draft = False

    return Transition(
        action="resubmit", from_status=from_status, to_status=request.status,
        next_approver_ids=_unique(reset_ids),
    )


def cancel(request: Request, submitter_id: str, reason: Optional[str] = None, now: Optional[datetime] = None) -> Transition:
    now = now or utcnow()
    if request.submitted_by != submitter_id:
        raise NotAuthorized(f"Only the submitter can cancel request {request.request_id}")
    if request.status in TERMINAL_STATUSES:
        raise RequestAlreadyFinalized(request.request_id, request.status.value)
    if request.status not in OPEN_STATUSES:
        raise RequestNotPending(request.request_id, request.status.value)

    from_status = request.status
    # Only approvers who were already asked to act hear about it.
    informed = pending_approver_ids(request)

    request.sender_status.cancelled_at = now
    request.sender_status.cancel_reason = (reason or "").strip() or None
    request.status = RequestStatus.CANCELLED

    return Transition(
        action="cancel", from_status=from_status, to_status=request.status,
        final=True, informed_ids=informed,
    )


def _record_override(request: Request, action: str, admin_id: str, admin_name: Optional[str],
                     from_status: RequestStatus, comment: str, now: datetime) -> None:
    request.history.append(HistoryEntry(
        action=action,
        performed_by=admin_id,
        performed_by_name=admin_name,
        from_status=from_status,
        to_status=request.status,
        comment=comment,
        timestamp=now,
    ))
    logger.info(f"{action} on {request.request_id} by {admin_id}: {from_status.value} -> {request.status.value}")


def _check_forceable(request: Request) -> None:
    if request.status in OVERRIDABLE_STATUSES:
        raise RequestAlreadyFinalized(request.request_id, request.status.value)
    if request.status not in FORCEABLE_STATUSES:
        raise InvalidTransition(f"Request {request.request_id} is {request.status.value} and cannot be forced")


def force_approve(request: Request, admin_id: str, comment: Optional[str],
                  admin_name: Optional[str] = None, now: Optional[datetime] = None) -> Transition:
    """Approve immediately, bypassing turn order."""
    now = now or utcnow()
    comment = _require_text(comment, "force approve")
    _check_forceable(request)
    from_status = request.status

    for step in request.approval_flow:
        if step.status in (StepStatus.PENDING, StepStatus.NEEDS_REVIEW):
            step.status = StepStatus.APPROVED
            step.action_at = now
            step.comment = f"{FORCE_APPROVE_PREFIX} {comment}"
    request.status = RequestStatus.APPROVED
    _record_override(request, "FORCE_APPROVE", admin_id, admin_name, from_status, comment, now)

    return Transition(
        action="force_approve", from_status=from_status, to_status=request.status,
        final=True, notify_submitter=True,
    )


def force_reject(request: Request, admin_id: str, comment: Optional[str],
                 admin_name: Optional[str] = None, now: Optional[datetime] = None) -> Transition:
    now = now or utcnow()
    comment = _require_text(comment, "force reject")
    _check_forceable(request)
    from_status = request.status

    for step in request.approval_flow:
        if step.status in (StepStatus.PENDING, StepStatus.NEEDS_REVIEW):
            step.status = StepStatus.REJECTED
            step.action_at = now
            step.comment = f"{FORCE_REJECT_PREFIX} {comment}"
    request.status = RequestStatus.REJECTED
    _record_override(request, "FORCE_REJECT", admin_id, admin_name, from_status, comment, now)

    return Transition(
        action="force_reject", from_status=from_status, to_status=request.status,
        final=True, notify_submitter=True,
    )


def override_decision(request: Request, admin_id: str, new_status: RequestStatus, comment: Optional[str],
                      admin_name: Optional[str] = None, now: Optional[datetime] = None) -> Transition:
    """
    Correct a finalized decision. Pending restarts the whole chain (and the
    SLA clock); Approved approves every outstanding Approver step.
    """
    now = now or utcnow()
    comment = _require_text(comment, "override a decision")
    if request.status not in OVERRIDABLE_STATUSES:
        raise InvalidTransition(f"Only Approved or Rejected requests can be overridden (request is {request.status.value})")
    new_status = RequestStatus(new_status)
    if new_status not in OVERRIDE_TARGETS:
        raise InvalidTransition(f"Override target must be Pending or Approved, got {new_status.value}")
    if new_status == request.status:
        raise InvalidTransition(f"Request {request.request_id} is already {new_status.value}")

    from_status = request.status

    if new_status == RequestStatus.PENDING:
        for step in request.approver_steps():
            step.status = StepStatus.PENDING
            step.comment = None
            step.action_at = None
            step.is_read = False
        request.status = RequestStatus.PENDING
        request.sent_at = now
        request.sla = None
        _record_override(request, "OVERRIDE", admin_id, admin_name, from_status, comment, now)
        return Transition(
            action="override", from_status=from_status, to_status=request.status,
            notify_submitter=True, next_approver_ids=pending_approver_ids(request),
        )

    for step in request.approver_steps():
        if step.status != StepStatus.APPROVED:
            step.status = StepStatus.APPROVED
            step.action_at = now
            step.comment = f"{OVERRIDE_PREFIX} {comment}"
    request.status = RequestStatus.APPROVED
    _record_override(request, "OVERRIDE", admin_id, admin_name, from_status, comment, now)
    return Transition(
        action="override", from_status=from_status, to_status=request.status,
        final=True, notify_submitter=True,
    )
