import sys
import os
sys.path.append(os.getcwd())
from datetime import timedelta

from hrms.tools import email_templates

EVIL = '<a href="http://evil">Click</a>'


def test_reminder_escapes_request_fields(make_request, make_step):
    request = make_request([make_step(1, "u_mgr")])
    request.subject = EVIL
    request.submitted_by_name = "<b>Emp</b>"

    subject, html = email_templates.sla_reminder(request, "<i>Mgr</i>", "24h")

    assert EVIL not in html
    assert "&lt;a href=&quot;http://evil&quot;&gt;Click&lt;/a&gt;" in html
    assert "&lt;b&gt;Emp&lt;/b&gt;" in html
    assert "&lt;i&gt;Mgr&lt;/i&gt;" in html
    assert request.request_id in subject


def test_escalation_mails_escape_names_and_reason(make_request, make_step):
    request = make_request([make_step(1, "u_mgr")])
    request.sla.overdue_hours = 50
    request.sla.deadline = request.sent_at + timedelta(hours=48)

    _, html = email_templates.escalation(request, "<script>x</script>", "Mgr", EVIL)
    assert "<script>" not in html and EVIL not in html
    assert "50 hours" in html

    _, notice = email_templates.escalation_notice(request, "Mgr", "<img src=x>")
    assert "<img" not in notice
    assert "&lt;img src=x&gt;" in notice
