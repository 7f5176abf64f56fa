from html import escape
from typing import Tuple
from hrms.config import settings
from hrms.models.request import Request

URGENCY_MESSAGES = {
    "24h": "This request has been pending for 24 hours.",
    "36h": "URGENT: This request has been pending for 36 hours and will be escalated soon!",
    "overdue": "CRITICAL: This request is now OVERDUE and has been escalated!",
}

def _fmt(dt) -> str:
    return dt.strftime("%Y-%m-%d %H:%M UTC") if dt else "N/A"

def _e(value) -> str:
    # Names, subjects and reasons are user supplied.
    return escape(str(value)) if value is not None else ""

def _request_url(request: Request) -> str:
    return escape(f"{settings.FRONTEND_URL}/requests/{request.id or request.request_id}", quote=True)

def _details(request: Request) -> str:
    deadline = request.sla.deadline if request.sla else None
    return f"""
        <ul>
            <li><strong>Request ID:</strong> {_e(request.request_id)}</li>
            <li><strong>Type:</strong> {_e(request.type.value)}</li>
            <li><strong>Subject:</strong> {_e(request.subject or "No subject")}</li>
            <li><strong>Submitted by:</strong> {_e(request.submitted_by_name)}</li>
            <li><strong>Submitted at:</strong> {_fmt(request.sent_at)}</li>
            <li><strong>SLA Deadline:</strong> {_fmt(deadline)}</li>
        </ul>"""

def sla_reminder(request: Request, approver_name: str, reminder_type: str) -> Tuple[str, str]:
    subject = f"SLA Reminder: Request {request.request_id} needs your approval"
    html = f"""
    <h2>SLA Reminder: Request Pending Approval</h2>
    <p>Dear {_e(approver_name)},</p>
    <p>{URGENCY_MESSAGES.get(reminder_type, "")}</p>
    <h3>Request Details:</h3>{_details(request)}
    <p><a href="{_request_url(request)}">View Request</a></p>
    <p>Best regards,<br>HRMS System</p>
    """
    return subject, html

def escalation(request: Request, recipient_name: str, original_approver: str, reason: str) -> Tuple[str, str]:
    overdue = request.sla.overdue_hours if request.sla else 0
    subject = f"Escalated Request: {request.request_id} (SLA Violation)"
    html = f"""
    <h2>Request Escalation Alert</h2>
    <p>Dear {_e(recipient_name)},</p>
    <p>The following request has been escalated to you: {_e(reason)}.</p>
    <h3>Request Details:</h3>{_details(request)}
    <p><strong>Overdue by:</strong> {overdue} hours<br>
       <strong>Original Approver:</strong> {_e(original_approver)}</p>
    <p><a href="{_request_url(request)}">View Request (Urgent)</a></p>
    <p>Best regards,<br>HRMS System</p>
    """
    return subject, html

def escalation_notice(request: Request, approver_name: str, escalated_to_name: str) -> Tuple[str, str]:
    overdue = request.sla.overdue_hours if request.sla else 0
    subject = f"Request {request.request_id} has been escalated to {escalated_to_name}"
    html = f"""
    <h2>Request Escalation Notification</h2>
    <p>Dear {_e(approver_name)},</p>
    <p>The request {_e(request.request_id)} assigned to you has been escalated to {_e(escalated_to_name)}
       due to SLA violation ({overdue}h overdue).</p>
    <p>Best regards,<br>HRMS System</p>
    """
    return subject, html
