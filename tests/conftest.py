import os
import sys
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

# Background jobs never start inside the test process.
os.environ.setdefault("SCHEDULER_ENABLED", "false")
sys.path.append(os.getcwd())

import pytest

from hrms.models.config import SystemConfig
from hrms.models.request import (
    Request, RequestType, RequestStatus, ApprovalStep, StepRole, StepStatus, SLAInfo,
)
from hrms.models.user import Employee, Department, Role
from hrms.services.sla_monitor import calculate_sla_deadline

T0 = datetime(2024, 3, 4, 2, 0)


def _employee(user_id, role=Role.EMPLOYEE, manager_id=None, department_id="D-ENG", full_name=None):
    return Employee(
        id=f"oid_{user_id}",
        user_id=user_id,
        full_name=full_name or user_id.replace("u_", "").title(),
        email=f"{user_id}@hrms.local",
        role=role,
        department_id=department_id,
        department_name="Engineering" if department_id == "D-ENG" else department_id,
        manager_id=manager_id,
    )


def _step(level, approver_id, role=StepRole.APPROVER, status=StepStatus.PENDING):
    return ApprovalStep(
        level=level,
        approver_id=approver_id,
        approver_name=approver_id.replace("u_", "").title(),
        approver_email=f"{approver_id}@hrms.local",
        role=role,
        status=status,
    )


def _request(steps, submitted_by="u_emp", status=RequestStatus.PENDING, sent_at=T0, sla_hours=48, **kwargs):
    request = Request(
        id="65f000000000000000000001",
        request_id="REQ-20240304-ABC123",
        type=kwargs.pop("type", RequestType.LEAVE),
        reason=kwargs.pop("reason", "Family trip"),
        start_date=datetime(2024, 3, 10),
        end_date=datetime(2024, 3, 12),
        submitted_by=submitted_by,
        submitted_by_name=submitted_by.replace("u_", "").title(),
        submitted_by_email=f"{submitted_by}@hrms.local",
        department_id="D-ENG",
        status=status,
        approval_flow=steps,
        sent_at=sent_at,
        created_at=sent_at,
        **kwargs
    )
    if sla_hours:
        request.sla = SLAInfo(deadline=calculate_sla_deadline(sent_at, sla_hours))
    return request


@pytest.fixture
def make_employee():
    return _employee


@pytest.fixture
def make_step():
    return _step


@pytest.fixture
def make_request():
    return _request


@pytest.fixture
def two_level_request():
    """Manager at level 1, Admin at level 2."""
    return _request([_step(1, "u_mgr"), _step(2, "u_admin")])


@pytest.fixture
def org():
    """Small org: employee -> manager -> director, plus one admin."""
    users = {
        "u_emp": _employee("u_emp", manager_id="u_mgr"),
        "u_mgr": _employee("u_mgr", role=Role.MANAGER, manager_id="u_director"),
        "u_director": _employee("u_director", role=Role.MANAGER),
        "u_admin": _employee("u_admin", role=Role.ADMIN, department_id=None),
        "u_hr": _employee("u_hr", department_id="D-HR"),
    }
    departments = {
        "D-ENG": Department(department_id="D-ENG", department_name="Engineering", manager_id="u_director"),
        "D-HR": Department(department_id="D-HR", department_name="Human Resources", manager_id="u_hr"),
    }
    return users, departments


@pytest.fixture
def mock_config():
    provider = MagicMock()
    provider.get = AsyncMock(return_value=SystemConfig())
    provider.subscribe = MagicMock()
    provider.unsubscribe = MagicMock()
    return provider


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.notify_user = AsyncMock()
    dispatcher.notify_users = AsyncMock()
    dispatcher.notify_department = AsyncMock()
    dispatcher.notify_all = AsyncMock()
    return dispatcher
