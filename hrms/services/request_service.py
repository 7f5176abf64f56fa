import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from hrms.database import db
from hrms.models.audit import Actor, ActionType
from hrms.models.base import utcnow
from hrms.models.notification import NotificationType
from hrms.models.request import (
    Request, RequestCreate, RequestEdit, RequestStatus, Comment,
)
from hrms.models.user import Employee, Role
from hrms.services.config_provider import config_provider, SystemConfigProvider
from hrms.services.sla_monitor import initialize_sla
from hrms.tools.notification_dispatcher import notification_dispatcher, NotificationDispatcher
from hrms.workflow import state_machine
from hrms.workflow.errors import RequestNotFound, NotAuthorized, InvalidTransition
from hrms.workflow.resolver import build_approval_flow, RepositoryDirectory
from hrms.workflow.state_machine import Transition

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = {
    "approve": ActionType.APPROVED,
    "reject": ActionType.REJECTED,
    "request_changes": ActionType.CHANGES_REQUESTED,
    "resubmit": ActionType.RESUBMITTED,
    "cancel": ActionType.CANCELLED,
    "force_approve": ActionType.FORCE_APPROVED,
    "force_reject": ActionType.FORCE_REJECTED,
    "override": ActionType.OVERRIDDEN,
}

SUBMITTER_NOTIFICATIONS = {
    "approve": NotificationType.REQUEST_APPROVED,
    "reject": NotificationType.REQUEST_REJECTED,
    "request_changes": NotificationType.REQUEST_NEEDS_REVIEW,
    "force_approve": NotificationType.REQUEST_APPROVED,
    "force_reject": NotificationType.REQUEST_REJECTED,
    "override": NotificationType.REQUEST_OVERRIDE,
}


def generate_request_id(now: datetime) -> str:
    return f"REQ-{now:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


class RequestService:
    """
    Orchestrates one user action on a request: load, apply the transition,
    write with a version check, then audit and notify.
    """

    def __init__(self,
                 dispatcher: NotificationDispatcher = notification_dispatcher,
                 config: SystemConfigProvider = config_provider,
                 clock: Callable[[], datetime] = utcnow):
        self.dispatcher = dispatcher
        self.config = config
        self.clock = clock

    async def get_request(self, request_id: str) -> Request:
        request = await db.requests.get_by_request_id(request_id)
        if not request:
            raise RequestNotFound(request_id)
        return request

    async def _get_actor(self, user_id: str) -> Employee:
        user = await db.users.get_user(user_id)
        if not user:
            raise NotAuthorized(f"Unknown user {user_id}")
        return user

    async def _get_admin(self, user_id: str) -> Employee:
        admin = await self._get_actor(user_id)
        if admin.role != Role.ADMIN:
            raise NotAuthorized("Only Admins can perform this action")
        return admin

    async def create(self, submitter_id: str, payload: RequestCreate) -> Request:
        submitter = await self._get_actor(submitter_id)
        flow = await build_approval_flow(
            payload.type, submitter, db.workflows, RepositoryDirectory(db.users, db.departments)
        )

        now = self.clock()
        request = Request(
            request_id=generate_request_id(now),
            **payload.model_dump(),
            submitted_by=submitter.user_id,
            submitted_by_name=submitter.full_name,
            submitted_by_email=submitter.email,
            department_id=submitter.department_id,
            department_name=submitter.department_name,
            approval_flow=flow,
            sent_at=now,
            created_at=now,
            updated_at=now,
        )
        sla_settings = (await self.config.get()).sla
        initialize_sla(request, sla_settings.deadline_hours)

        await db.requests.create(request)
        logger.info(f"Request {request.request_id} ({request.type.value}) submitted by {submitter.user_id}")

        transition = Transition(
            action="submit",
            from_status=request.status,
            to_status=request.status,
            next_approver_ids=state_machine.pending_approver_ids(request),
        )
        await self._after_commit(request, transition, submitter, ActionType.SUBMITTED, payload.reason)
        return request

    async def approve(self, request_id: str, user_id: str, comment: Optional[str] = None) -> Request:
        actor = await self._get_actor(user_id)
        request = await self.get_request(request_id)
        transition = state_machine.approve(request, actor.user_id, comment, now=self.clock())
        return await self._commit(request, transition, actor, comment)

    async def reject(self, request_id: str, user_id: str, reason: Optional[str]) -> Request:
        actor = await self._get_actor(user_id)
        request = await self.get_request(request_id)
        transition = state_machine.reject(request, actor.user_id, reason, now=self.clock())
        return await self._commit(request, transition, actor, reason)

    async def request_changes(self, request_id: str, user_id: str, comment: Optional[str]) -> Request:
        actor = await self._get_actor(user_id)
        request = await self.get_request(request_id)
        transition = state_machine.request_changes(request, actor.user_id, comment, now=self.clock())
        return await self._commit(request, transition, actor, comment)

    async def resubmit(self, request_id: str, user_id: str, changes: Optional[RequestEdit] = None) -> Request:
        actor = await self._get_actor(user_id)
        request = await self.get_request(request_id)
        transition = state_machine.resubmit(request, actor.user_id, now=self.clock())

        if changes:
            updates = changes.model_dump(exclude_none=True)
            data = request.model_dump()
            data.update(updates)
            # Re-validate so edited dates still respect start <= end.
            edited = Request(**data)
            for field in updates:
                setattr(request, field, getattr(edited, field))

        return await self._commit(request, transition, actor, None)

    async def cancel(self, request_id: str, user_id: str, reason: Optional[str] = None) -> Request:
        actor = await self._get_actor(user_id)
        request = await self.get_request(request_id)
        transition = state_machine.cancel(request, actor.user_id, reason, now=self.clock())
        return await self._commit(request, transition, actor, reason)

    async def force_approve(self, request_id: str, admin_id: str, comment: Optional[str]) -> Request:
        admin = await self._get_admin(admin_id)
        request = await self.get_request(request_id)
        transition = state_machine.force_approve(request, admin.user_id, comment, admin.full_name, now=self.clock())
        return await self._commit(request, transition, admin, comment)

    async def force_reject(self, request_id: str, admin_id: str, comment: Optional[str]) -> Request:
        admin = await self._get_admin(admin_id)
        request = await self.get_request(request_id)
        transition = state_machine.force_reject(request, admin.user_id, comment, admin.full_name, now=self.clock())
        return await self._commit(request, transition, admin, comment)

    async def override(self, request_id: str, admin_id: str, new_status: RequestStatus, comment: Optional[str]) -> Request:
        admin = await self._get_admin(admin_id)
        request = await self.get_request(request_id)
        now = self.clock()
        transition = state_machine.override_decision(request, admin.user_id, new_status, comment, admin.full_name, now=now)
        if transition.to_status == RequestStatus.PENDING:
            sla_settings = (await self.config.get()).sla
            initialize_sla(request, sla_settings.deadline_hours)
        return await self._commit(request, transition, admin, comment)

    async def add_comment(self, request_id: str, user_id: str, content: str) -> Request:
        actor = await self._get_actor(user_id)
        request = await self.get_request(request_id)
        involved = {request.submitted_by, *(s.approver_id for s in request.approval_flow), *request.cc}
        if actor.user_id not in involved and actor.role != Role.ADMIN:
            raise NotAuthorized(f"User {actor.user_id} is not involved in request {request.request_id}")
        if not content or not content.strip():
            raise InvalidTransition("Comment cannot be empty")

        request.comments.append(Comment(
            user_id=actor.user_id, user_name=actor.full_name, content=content.strip(), created_at=self.clock()
        ))
        await db.requests.save_versioned(request)

        recipients = [i for i in involved if i != actor.user_id]
        try:
            await self.dispatcher.notify_users(
                recipients,
                f"{actor.full_name} commented on request {request.request_id}",
                NotificationType.REQUEST_UPDATE,
                sender_id=actor.user_id, sender_name=actor.full_name, related_id=request.id,
            )
        except Exception as e:
            logger.error(f"Failed to send comment notifications for {request.request_id}: {e}")
        return request

    async def list_mine(self, user_id: str, status: Optional[RequestStatus] = None) -> List[Request]:
        return await db.requests.find_by_submitter(user_id, status)

    async def list_awaiting(self, user_id: str) -> List[Request]:
        """Open requests where it is currently this user's turn."""
        candidates = await db.requests.find_awaiting(user_id)
        return [r for r in candidates if state_machine.is_user_turn(r, user_id)]

    async def _commit(self, request: Request, transition: Transition, actor: Employee, comment: Optional[str]) -> Request:
        await db.requests.save_versioned(request)
        logger.info(
            f"{transition.action} on {request.request_id} by {actor.user_id}: "
            f"{transition.from_status.value} -> {transition.to_status.value}"
        )
        await self._after_commit(request, transition, actor, AUDIT_ACTIONS[transition.action], comment)
        return request

    async def _after_commit(self, request: Request, transition: Transition, actor: Employee,
                            action_type: ActionType, comment: Optional[str]) -> None:
        """Audit and notifications. Failures here are logged; the state change already landed."""
        try:
            await db.audit.log_action(
                Actor(id=actor.user_id, name=actor.full_name, type="USER"),
                action_type,
                f"{transition.from_status.value} -> {transition.to_status.value}",
                request_id=request.request_id,
                metadata={"comment": comment} if comment else None,
            )
        except Exception as e:
            logger.error(f"Failed to write audit event for {request.request_id}: {e}")

        try:
            await self._notify(request, transition, actor)
        except Exception as e:
            logger.error(f"Failed to send notifications for {request.request_id}: {e}")

    async def _notify(self, request: Request, transition: Transition, actor: Employee) -> None:
        sender = {"sender_id": actor.user_id, "sender_name": actor.full_name, "related_id": request.id}
        meta = {"request_id": request.request_id, "request_type": request.type.value, "status": request.status.value}

        if transition.next_approver_ids:
            if transition.action == "resubmit":
                message, type = f"{request.submitted_by_name} resubmitted request {request.request_id}", NotificationType.REQUEST_RESUBMITTED
            else:
                message, type = f"{request.submitted_by_name}'s {request.type.value} request needs your approval", NotificationType.NEW_REQUEST
            await self.dispatcher.notify_users(transition.next_approver_ids, message, type, metadata=meta, **sender)

        if transition.action == "submit" and request.cc:
            await self.dispatcher.notify_users(
                request.cc,
                f"You were copied on {request.submitted_by_name}'s {request.type.value} request",
                NotificationType.REQUEST_UPDATE, metadata=meta, **sender,
            )

        if transition.notify_submitter and request.submitted_by != actor.user_id:
            await self.dispatcher.notify_user(
                request.submitted_by,
                f"Your request {request.request_id} is now {request.status.value} ({actor.full_name})",
                SUBMITTER_NOTIFICATIONS[transition.action], metadata=meta, **sender,
            )

        if transition.final and request.cc and transition.action != "cancel":
            await self.dispatcher.notify_users(
                request.cc,
                f"Request {request.request_id} from {request.submitted_by_name} is {request.status.value}",
                NotificationType.REQUEST_UPDATE, metadata=meta, **sender,
            )

        if transition.informed_ids:
            await self.dispatcher.notify_users(
                transition.informed_ids,
                f"{request.submitted_by_name} cancelled request {request.request_id}",
                NotificationType.REQUEST_CANCELLED, metadata=meta, **sender,
            )


request_service = RequestService()
