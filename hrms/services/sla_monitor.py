import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Any, List, Optional, Tuple

from hrms.database import db
from hrms.models.base import utcnow
from hrms.models.config import SLASettings
from hrms.models.notification import NotificationType
from hrms.models.request import Request, SLAInfo, SLAReminder, OPEN_STATUSES
from hrms.models.user import Employee
from hrms.services.config_provider import config_provider, SystemConfigProvider
from hrms.tools import email_templates
from hrms.tools.mailer import mailer, Mailer
from hrms.tools.notification_dispatcher import notification_dispatcher, NotificationDispatcher
from hrms.workflow.state_machine import actionable_steps

logger = logging.getLogger(__name__)

OVERDUE_REMINDER = "overdue"


def calculate_sla_deadline(sent_at: datetime, deadline_hours: int = 48) -> datetime:
    return sent_at + timedelta(hours=deadline_hours)


def initialize_sla(request: Request, deadline_hours: int = 48) -> SLAInfo:
    """Start the SLA clock from `sent_at`. The deadline is fixed from then on."""
    request.sla = SLAInfo(deadline=calculate_sla_deadline(request.sent_at, deadline_hours))
    return request.sla


def check_overdue(request: Request, now: datetime) -> Tuple[bool, int]:
    if not request.sla or not request.sla.deadline:
        return False, 0
    if now > request.sla.deadline:
        overdue_hours = int((now - request.sla.deadline).total_seconds() // 3600)
        return True, overdue_hours
    return False, 0


class SLAMonitor:
    """
    Periodic sweep over open requests: reminders at fixed elapsed hours,
    overdue bookkeeping, and a one-time escalation past the deadline.
    """

    def __init__(self,
                 clock: Callable[[], datetime] = utcnow,
                 mail: Mailer = mailer,
                 dispatcher: NotificationDispatcher = notification_dispatcher,
                 config: SystemConfigProvider = config_provider):
        self.clock = clock
        self.mail = mail
        self.dispatcher = dispatcher
        self.config = config

    async def sweep(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or self.clock()
        sla_settings = (await self.config.get()).sla
        requests = await db.requests.find_open_with_sla()
        logger.info(f"SLA sweep: {len(requests)} open requests with SLA tracking")

        stats = {"total_checked": len(requests), "escalations": 0, "overdue_updates": 0}
        for hours in sla_settings.reminder_hours:
            stats[f"reminders_{hours}h"] = 0

        for request in requests:
            try:
                outcome = await self.process_request(request, now, sla_settings)
            except Exception as e:
                logger.error(f"Error processing SLA for request {request.request_id}: {e}")
                continue
            for key, value in outcome.items():
                stats[key] = stats.get(key, 0) + value

        logger.info(f"SLA sweep completed: {stats}")
        return stats

    async def process_request(self, request: Request, now: datetime, sla_settings: SLASettings) -> Dict[str, int]:
        outcome: Dict[str, int] = {}
        changed = False
        sla = request.sla

        is_overdue, overdue_hours = check_overdue(request, now)
        if is_overdue and (not sla.is_overdue or sla.overdue_hours != overdue_hours):
            if not sla.is_overdue:
                outcome["overdue_updates"] = 1
            sla.is_overdue = True
            sla.overdue_hours = overdue_hours
            changed = True

        sent_at = request.sent_at or request.created_at
        elapsed_hours = (now - sent_at).total_seconds() / 3600

        for hours in sla_settings.reminder_hours:
            reminder_type = f"{hours}h"
            if hours <= elapsed_hours < hours + 1 and not sla.has_reminder(reminder_type):
                if await self.send_reminder(request, reminder_type, now):
                    outcome[f"reminders_{hours}h"] = 1
                    changed = True

        if is_overdue and overdue_hours >= sla_settings.escalation_hours and not sla.escalated_to:
            if not sla.has_reminder(OVERDUE_REMINDER):
                await self.send_reminder(request, OVERDUE_REMINDER, now)
            if await self.escalate(request, now):
                outcome["escalations"] = 1
            changed = True

        if changed:
            await db.requests.save_versioned(request)
        return outcome

    async def _approver_contact(self, approver_id: str, fallback_email: Optional[str]) -> Tuple[Optional[Employee], Optional[str]]:
        user = await db.users.get_user(approver_id)
        email = user.email if user and user.email else fallback_email
        return user, email

    async def send_reminder(self, request: Request, reminder_type: str, now: datetime) -> List[str]:
        """E-mail every approver on the current level; records the reminder if anyone was reached."""
        steps = actionable_steps(request)
        if not steps:
            logger.info(f"No pending approvers for request {request.request_id}, skipping reminder")
            return []

        recipients = []
        for step in steps:
            try:
                user, email = await self._approver_contact(step.approver_id, step.approver_email)
                if not email:
                    logger.warning(f"Approver {step.approver_id} has no e-mail address")
                    continue
                name = user.full_name if user else step.approver_name
                subject, html = email_templates.sla_reminder(request, name, reminder_type)
                await self.mail.send_email(email, subject, html)
                recipients.append(step.approver_id)
            except Exception as e:
                logger.error(f"Failed to send {reminder_type} reminder to {step.approver_id}: {e}")

        if recipients:
            request.sla.reminders_sent.append(SLAReminder(type=reminder_type, sent_at=now, recipient_ids=recipients))
            logger.info(f"{reminder_type} reminder for {request.request_id} sent to {recipients}")
            # The mails went out; a failed in-app write must not cause a resend.
            try:
                await self.dispatcher.notify_users(
                    recipients,
                    f"Request {request.request_id} from {request.submitted_by_name} is waiting for your approval ({reminder_type}).",
                    NotificationType.SLA_REMINDER,
                    related_id=request.id,
                    metadata={"request_type": request.type.value, "reminder": reminder_type},
                )
            except Exception as e:
                logger.error(f"Failed to write {reminder_type} reminder notifications for {request.request_id}: {e}")
        return recipients

    async def escalate(self, request: Request, now: datetime) -> Optional[Employee]:
        """
        Hand an overdue request to the pending approver's manager, or to an
        Admin when the approver has none.
        """
        steps = actionable_steps(request)
        if not steps:
            logger.info(f"No pending approver for request {request.request_id}, skipping escalation")
            return None

        step = steps[0]
        approver = await db.users.get_user(step.approver_id)
        target = None
        if approver and approver.manager_id:
            target = await db.users.get_user(approver.manager_id)

        if target:
            reason = f"Escalated due to SLA violation ({request.sla.overdue_hours}h overdue)"
        else:
            logger.warning(f"No manager found for approver {step.approver_id}, escalating to Admin")
            admins = await db.users.find_admins()
            if not admins:
                logger.error(f"Cannot escalate {request.request_id}: no manager and no Admin")
                return None
            target = admins[0]
            reason = "No manager found, escalated to Admin"

        request.sla.escalated_to = target.user_id
        request.sla.escalated_at = now
        request.sla.escalation_reason = reason

        approver_name = approver.full_name if approver else step.approver_name
        subject, html = email_templates.escalation(request, target.full_name, approver_name, reason)
        await self.mail.send_email(target.email, subject, html)
        await self.dispatcher.notify_user(
            target.user_id,
            f"URGENT: request {request.request_id} from {request.submitted_by_name} is "
            f"{request.sla.overdue_hours}h overdue and has been escalated to you.",
            NotificationType.SLA_ESCALATION,
            related_id=request.id,
            metadata={"priority": "Urgent", "request_type": request.type.value},
        )

        approver_email = approver.email if approver else step.approver_email
        if approver_email:
            subject, html = email_templates.escalation_notice(request, approver_name, target.full_name)
            await self.mail.send_email(approver_email, subject, html)

        logger.warning(f"Request {request.request_id} escalated to {target.user_id}: {reason}")
        return target

    async def get_sla_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or self.clock()
        open_statuses = {"$in": [s.value for s in OPEN_STATUSES]}
        return {
            "total_with_sla": await db.requests.count({"sla.deadline": {"$exists": True, "$ne": None}}),
            "overdue": await db.requests.count({"sla.is_overdue": True, "status": open_statuses}),
            "escalated": await db.requests.count({"sla.escalated_to": {"$exists": True, "$ne": None}}),
            "approaching_24h": await db.requests.count({
                "status": open_statuses,
                "sla.deadline": {"$gte": now, "$lte": now + timedelta(hours=24)},
            }),
        }


sla_monitor = SLAMonitor()
