import sys
import os
sys.path.append(os.getcwd())
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from hrms.models.audit import ActionType
from hrms.models.config import SystemConfig, SLASettings
from hrms.models.notification import NotificationType
from hrms.models.request import RequestCreate, RequestEdit, RequestStatus, RequestType
from hrms.models.workflow import Workflow, WorkflowStep, ApproverType
from hrms.services.request_service import RequestService
from hrms.workflow.errors import RequestNotFound, NotAuthorized, StaleRequest, NotYourTurn

NOW = datetime(2024, 3, 4, 2, 0)


@pytest.fixture
def mock_db(org):
    users, departments = org
    with patch("hrms.services.request_service.db") as mock:
        mock.users.get_user = AsyncMock(side_effect=lambda uid: users.get(uid))
        mock.users.find_admins = AsyncMock(return_value=[users["u_admin"]])
        mock.departments.get_department = AsyncMock(side_effect=lambda did: departments.get(did))
        mock.workflows.get_active_workflow = AsyncMock(return_value=Workflow(
            name="Leave approval",
            request_type=RequestType.LEAVE,
            approval_flow=[
                WorkflowStep(level=1, approver_type=ApproverType.DIRECT_MANAGER, display_name="Manager"),
                WorkflowStep(level=2, approver_type=ApproverType.SPECIFIC_USER, approver_id="u_admin", display_name="Admin"),
            ],
        ))
        mock.requests.create = AsyncMock(side_effect=lambda r: r)
        mock.requests.save_versioned = AsyncMock(side_effect=lambda r: r)
        mock.requests.get_by_request_id = AsyncMock(return_value=None)
        mock.audit.log_action = AsyncMock()
        yield mock


@pytest.fixture
def service(mock_dispatcher, mock_config):
    return RequestService(dispatcher=mock_dispatcher, config=mock_config, clock=lambda: NOW)


def _payload(**overrides):
    data = dict(type=RequestType.LEAVE, reason="Family trip", start_date=datetime(2024, 3, 10),
                end_date=datetime(2024, 3, 12), cc=["u_hr"])
    data.update(overrides)
    return RequestCreate(**data)


@pytest.mark.asyncio
async def test_create_resolves_flow_and_starts_sla(service, mock_db, mock_dispatcher):
    request = await service.create("u_emp", _payload())

    assert request.request_id.startswith("REQ-20240304-")
    assert [s.approver_id for s in request.approval_flow] == ["u_mgr", "u_admin"]
    assert request.sent_at == NOW
    assert request.sla.deadline == NOW + timedelta(hours=48)
    assert request.submitted_by_name == "Emp"
    mock_db.requests.create.assert_awaited_once()
    mock_db.audit.log_action.assert_awaited_once()
    assert mock_db.audit.log_action.call_args.args[1] == ActionType.SUBMITTED

    # First level approver and CC are told.
    calls = mock_dispatcher.notify_users.call_args_list
    assert calls[0].args[0] == ["u_mgr"]
    assert calls[0].args[2] == NotificationType.NEW_REQUEST
    assert calls[1].args[0] == ["u_hr"]


@pytest.mark.asyncio
async def test_create_uses_configured_deadline(service, mock_db, mock_config):
    mock_config.get = AsyncMock(return_value=SystemConfig(sla=SLASettings(deadline_hours=24)))
    request = await service.create("u_emp", _payload())
    assert request.sla.deadline == NOW + timedelta(hours=24)


@pytest.mark.asyncio
async def test_manager_request_goes_to_admin(service, mock_db):
    request = await service.create("u_mgr", _payload())
    assert [(s.level, s.approver_id) for s in request.approval_flow] == [(1, "u_admin")]
    mock_db.workflows.get_active_workflow.assert_not_called()


@pytest.mark.asyncio
async def test_admin_cannot_submit(service, mock_db):
    with pytest.raises(NotAuthorized):
        await service.create("u_admin", _payload())
    mock_db.requests.create.assert_not_called()


@pytest.mark.asyncio
async def test_approve_persists_and_notifies_next_level(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)

    request = await service.approve(two_level_request.request_id, "u_mgr", "fine by me")

    assert request.status == RequestStatus.MANAGER_APPROVED
    mock_db.requests.save_versioned.assert_awaited_once_with(two_level_request)
    mock_dispatcher.notify_users.assert_awaited_once()
    assert mock_dispatcher.notify_users.call_args.args[0] == ["u_admin"]
    mock_dispatcher.notify_user.assert_not_called()


@pytest.mark.asyncio
async def test_final_approval_notifies_submitter(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    await service.approve(two_level_request.request_id, "u_mgr")
    await service.approve(two_level_request.request_id, "u_admin")

    mock_dispatcher.notify_user.assert_awaited_once()
    args = mock_dispatcher.notify_user.call_args.args
    assert args[0] == "u_emp"
    assert args[2] == NotificationType.REQUEST_APPROVED


@pytest.mark.asyncio
async def test_out_of_turn_action_is_not_saved(service, mock_db, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    with pytest.raises(NotYourTurn):
        await service.approve(two_level_request.request_id, "u_admin")
    mock_db.requests.save_versioned.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_request(service, mock_db):
    with pytest.raises(RequestNotFound):
        await service.reject("REQ-missing", "u_mgr", "no")


@pytest.mark.asyncio
async def test_stale_write_propagates_without_notifications(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    mock_db.requests.save_versioned = AsyncMock(side_effect=StaleRequest(two_level_request.request_id))

    with pytest.raises(StaleRequest):
        await service.reject(two_level_request.request_id, "u_mgr", "no")
    mock_dispatcher.notify_user.assert_not_called()
    mock_db.audit.log_action.assert_not_called()


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_transition(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    mock_dispatcher.notify_user = AsyncMock(side_effect=Exception("mongo down"))

    request = await service.reject(two_level_request.request_id, "u_mgr", "no")
    assert request.status == RequestStatus.REJECTED
    mock_db.requests.save_versioned.assert_awaited_once()


@pytest.mark.asyncio
async def test_resubmit_applies_edits(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    await service.request_changes(two_level_request.request_id, "u_mgr", "dates are wrong")

    request = await service.resubmit(
        two_level_request.request_id, "u_emp",
        RequestEdit(start_date=datetime(2024, 3, 11), end_date=datetime(2024, 3, 13), reason="Moved trip"),
    )
    assert request.status == RequestStatus.PENDING
    assert request.reason == "Moved trip"
    assert request.start_date == datetime(2024, 3, 11)
    last = mock_dispatcher.notify_users.call_args
    assert last.args[0] == ["u_mgr"]
    assert last.args[2] == NotificationType.REQUEST_RESUBMITTED


@pytest.mark.asyncio
async def test_cancel_informs_pending_approvers(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    await service.cancel(two_level_request.request_id, "u_emp", "no longer needed")

    mock_dispatcher.notify_users.assert_awaited_once()
    args = mock_dispatcher.notify_users.call_args.args
    assert args[0] == ["u_mgr"]
    assert args[2] == NotificationType.REQUEST_CANCELLED


@pytest.mark.asyncio
async def test_force_actions_require_admin(service, mock_db, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)
    with pytest.raises(NotAuthorized):
        await service.force_approve(two_level_request.request_id, "u_mgr", "because")

    request = await service.force_approve(two_level_request.request_id, "u_admin", "because")
    assert request.status == RequestStatus.APPROVED
    assert request.history[-1].performed_by == "u_admin"
    assert mock_db.audit.log_action.call_args.args[1] == ActionType.FORCE_APPROVED


@pytest.mark.asyncio
async def test_override_to_pending_restarts_sla(service, mock_db, mock_dispatcher, make_request, make_step):
    request = make_request([make_step(1, "u_mgr")], status=RequestStatus.REJECTED)
    mock_db.requests.get_by_request_id = AsyncMock(return_value=request)

    await service.override(request.request_id, "u_admin", RequestStatus.PENDING, "rejected by mistake")

    assert request.status == RequestStatus.PENDING
    assert request.sent_at == NOW
    assert request.sla.deadline == NOW + timedelta(hours=48)
    assert mock_dispatcher.notify_users.call_args.args[0] == ["u_mgr"]
    assert mock_dispatcher.notify_user.call_args.args[2] == NotificationType.REQUEST_OVERRIDE


@pytest.mark.asyncio
async def test_add_comment(service, mock_db, mock_dispatcher, two_level_request):
    mock_db.requests.get_by_request_id = AsyncMock(return_value=two_level_request)

    with pytest.raises(NotAuthorized):
        await service.add_comment(two_level_request.request_id, "u_hr", "hello")

    request = await service.add_comment(two_level_request.request_id, "u_mgr", " which dates? ")
    assert request.comments[-1].content == "which dates?"
    recipients = mock_dispatcher.notify_users.call_args.args[0]
    assert "u_mgr" not in recipients
    assert set(recipients) == {"u_emp", "u_admin"}


@pytest.mark.asyncio
async def test_list_awaiting_filters_by_turn(service, mock_db, two_level_request):
    mock_db.requests.find_awaiting = AsyncMock(return_value=[two_level_request])
    assert await service.list_awaiting("u_mgr") == [two_level_request]
    assert await service.list_awaiting("u_admin") == []
