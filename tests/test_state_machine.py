import sys
import os
sys.path.append(os.getcwd())
import pytest
from datetime import datetime, timedelta

from hrms.models.request import RequestStatus, StepRole, StepStatus
from hrms.workflow import state_machine as sm
from hrms.workflow.errors import (
    NotYourTurn, RequestNotPending, RequestAlreadyFinalized, MissingReason,
    NotAuthorized, InvalidTransition,
)

T0 = datetime(2024, 3, 4, 2, 0)


def test_turn_order_two_levels(two_level_request):
    assert sm.is_user_turn(two_level_request, "u_mgr") is True
    assert sm.is_user_turn(two_level_request, "u_admin") is False
    assert sm.current_level(two_level_request) == 1
    assert sm.pending_approver_ids(two_level_request) == ["u_mgr"]


def test_co_approvers_share_a_level(make_request, make_step):
    request = make_request([make_step(1, "u_a"), make_step(1, "u_b"), make_step(2, "u_c")])
    assert sm.is_user_turn(request, "u_a") and sm.is_user_turn(request, "u_b")
    assert not sm.is_user_turn(request, "u_c")

    transition = sm.approve(request, "u_a", now=T0)
    # Level 1 is not cleared until u_b approves as well.
    assert request.status == RequestStatus.MANAGER_APPROVED
    assert transition.next_approver_ids == []
    assert not sm.is_user_turn(request, "u_c")

    transition = sm.approve(request, "u_b", now=T0)
    assert transition.next_approver_ids == ["u_c"]
    assert sm.is_user_turn(request, "u_c")


def test_only_one_level_actionable_at_a_time(make_request, make_step):
    request = make_request([make_step(1, "u_a"), make_step(2, "u_b"), make_step(3, "u_c")])
    for user_id in ("u_a", "u_b", "u_c"):
        levels = {s.level for s in request.approval_flow if sm.is_user_turn(request, s.approver_id)}
        assert len(levels) == 1
        sm.approve(request, user_id, now=T0)
    assert request.status == RequestStatus.APPROVED


def test_reviewer_and_notified_steps_do_not_gate(make_request, make_step):
    request = make_request([
        make_step(1, "u_mgr"),
        make_step(1, "u_hr", role=StepRole.NOTIFIED),
        make_step(2, "u_rev", role=StepRole.REVIEWER),
    ])
    transition = sm.approve(request, "u_mgr", now=T0)
    assert transition.final is True
    assert request.status == RequestStatus.APPROVED


def test_manager_then_admin_reject_scenario(two_level_request):
    request = two_level_request

    transition = sm.approve(request, "u_mgr", "ok", now=T0 + timedelta(hours=1))
    assert request.status == RequestStatus.MANAGER_APPROVED
    assert transition.final is False
    assert transition.next_approver_ids == ["u_admin"]
    assert sm.is_user_turn(request, "u_admin")

    transition = sm.reject(request, "u_admin", "insufficient notice", now=T0 + timedelta(hours=2))
    assert request.status == RequestStatus.REJECTED
    assert transition.final and transition.notify_submitter
    assert request.approval_flow[1].comment == "insufficient notice"

    with pytest.raises(RequestAlreadyFinalized):
        sm.approve(request, "u_admin", now=T0 + timedelta(hours=3))
    with pytest.raises(RequestAlreadyFinalized):
        sm.reject(request, "u_admin", "again", now=T0 + timedelta(hours=3))


def test_final_approval_happens_once(two_level_request):
    sm.approve(two_level_request, "u_mgr", now=T0)
    transition = sm.approve(two_level_request, "u_admin", now=T0)
    assert transition.final and transition.notify_submitter
    assert two_level_request.status == RequestStatus.APPROVED
    with pytest.raises(RequestAlreadyFinalized):
        sm.approve(two_level_request, "u_admin", now=T0)


def test_not_your_turn_and_not_authorized(two_level_request):
    with pytest.raises(NotYourTurn):
        sm.approve(two_level_request, "u_admin", now=T0)
    with pytest.raises(NotAuthorized):
        sm.approve(two_level_request, "u_stranger", now=T0)


def test_reject_requires_reason(two_level_request):
    with pytest.raises(MissingReason):
        sm.reject(two_level_request, "u_mgr", "   ", now=T0)
    # Nothing was mutated.
    assert two_level_request.status == RequestStatus.PENDING
    assert two_level_request.approval_flow[0].status == StepStatus.PENDING


def test_request_changes_then_resubmit_keeps_approved_levels(make_request, make_step):
    request = make_request([make_step(1, "u_mgr"), make_step(2, "u_hr"), make_step(3, "u_admin")])
    sm.approve(request, "u_mgr", now=T0)

    with pytest.raises(MissingReason):
        sm.request_changes(request, "u_hr", None, now=T0)
    sm.request_changes(request, "u_hr", "attach the certificate", now=T0)
    assert request.status == RequestStatus.NEEDS_REVIEW
    assert request.approval_flow[1].status == StepStatus.NEEDS_REVIEW

    with pytest.raises(RequestNotPending):
        sm.approve(request, "u_hr", now=T0)

    transition = sm.resubmit(request, "u_emp", now=T0)
    assert request.status == RequestStatus.PENDING
    assert [s.status for s in request.approval_flow] == [StepStatus.APPROVED, StepStatus.PENDING, StepStatus.PENDING]
    assert transition.next_approver_ids == ["u_hr"]
    assert sm.is_user_turn(request, "u_hr")


def test_resubmit_rules(two_level_request):
    with pytest.raises(InvalidTransition):
        sm.resubmit(two_level_request, "u_emp", now=T0)
    with pytest.raises(NotAuthorized):
        sm.resubmit(two_level_request, "u_mgr", now=T0)


def test_cancel(two_level_request):
    with pytest.raises(NotAuthorized):
        sm.cancel(two_level_request, "u_mgr", now=T0)

    transition = sm.cancel(two_level_request, "u_emp", "plans changed", now=T0)
    assert two_level_request.status == RequestStatus.CANCELLED
    assert two_level_request.sender_status.cancel_reason == "plans changed"
    assert two_level_request.sender_status.cancelled_at == T0
    # Level 2 was never asked to act.
    assert transition.informed_ids == ["u_mgr"]

    with pytest.raises(RequestAlreadyFinalized):
        sm.approve(two_level_request, "u_mgr", now=T0)


def test_force_approve_bypasses_turn_order(two_level_request):
    with pytest.raises(MissingReason):
        sm.force_approve(two_level_request, "u_root", "", now=T0)

    transition = sm.force_approve(two_level_request, "u_root", "urgent", "Root", now=T0)
    assert two_level_request.status == RequestStatus.APPROVED
    assert transition.final
    assert all(s.status == StepStatus.APPROVED for s in two_level_request.approval_flow)
    assert two_level_request.approval_flow[1].comment == "[Admin Force Approve] urgent"
    entry = two_level_request.history[-1]
    assert entry.action == "FORCE_APPROVE"
    assert entry.from_status == RequestStatus.PENDING
    assert entry.to_status == RequestStatus.APPROVED

    with pytest.raises(RequestAlreadyFinalized):
        sm.force_reject(two_level_request, "u_root", "changed my mind", now=T0)


def test_force_reject_from_needs_review(make_request, make_step):
    request = make_request([make_step(1, "u_mgr")])
    sm.request_changes(request, "u_mgr", "details please", now=T0)
    sm.force_reject(request, "u_root", "duplicate", now=T0)
    assert request.status == RequestStatus.REJECTED
    assert request.approval_flow[0].comment == "[Admin Force Reject] duplicate"


def test_override_to_pending_restarts_chain(two_level_request):
    sm.approve(two_level_request, "u_mgr", now=T0)
    sm.reject(two_level_request, "u_admin", "no", now=T0)

    later = T0 + timedelta(days=2)
    transition = sm.override_decision(two_level_request, "u_root", RequestStatus.PENDING, "wrong call", now=later)
    assert two_level_request.status == RequestStatus.PENDING
    assert all(s.status == StepStatus.PENDING for s in two_level_request.approval_flow)
    assert two_level_request.sent_at == later
    assert two_level_request.sla is None
    assert transition.next_approver_ids == ["u_mgr"]
    assert two_level_request.history[-1].action == "OVERRIDE"


def test_override_rules(two_level_request):
    with pytest.raises(InvalidTransition):
        sm.override_decision(two_level_request, "u_root", RequestStatus.APPROVED, "x", now=T0)

    sm.approve(two_level_request, "u_mgr", now=T0)
    sm.reject(two_level_request, "u_admin", "no", now=T0)
    with pytest.raises(MissingReason):
        sm.override_decision(two_level_request, "u_root", RequestStatus.APPROVED, None, now=T0)
    with pytest.raises(InvalidTransition):
        sm.override_decision(two_level_request, "u_root", RequestStatus.CANCELLED, "x", now=T0)

    sm.override_decision(two_level_request, "u_root", RequestStatus.APPROVED, "policy exception", now=T0)
    assert two_level_request.status == RequestStatus.APPROVED
    assert two_level_request.approval_flow[1].comment == "[Admin Override] policy exception"


def test_cancel_after_first_level_informs_next_level(two_level_request):
    sm.approve(two_level_request, "u_mgr", now=T0)
    transition = sm.cancel(two_level_request, "u_emp", now=T0 + timedelta(hours=1))
    assert transition.informed_ids == ["u_admin"]
