import sys
import os
sys.path.append(os.getcwd())
import pytest
from hrms.guardrails.permissions import PermissionChecker, Permission
from hrms.api.auth import User

@pytest.fixture
def permissions():
    return PermissionChecker()

def test_rbac_check(permissions):
    admin = User(username="u_admin", role="Admin")
    assert permissions.check_permission(admin, Permission.OVERRIDE_DECISION) is True
    assert permissions.check_permission(admin, Permission.CONFIGURE_SYSTEM) is True
    # Admins decide requests, they do not file them.
    assert permissions.check_permission(admin, Permission.SUBMIT_REQUEST) is False

    manager = User(username="u_mgr", role="Manager")
    assert permissions.check_permission(manager, Permission.APPROVE_REQUEST) is True
    assert permissions.check_permission(manager, Permission.VIEW_DASHBOARD) is True
    assert permissions.check_permission(manager, Permission.MANAGE_WORKFLOWS) is False

    employee = User(username="u_emp", role="Employee")
    assert permissions.check_permission(employee, Permission.SUBMIT_REQUEST) is True
    assert permissions.check_permission(employee, Permission.VIEW_DASHBOARD) is False

def test_unknown_role_is_denied(permissions):
    assert permissions.check_permission(User(username="x", role="superuser"), Permission.VIEW_REQUEST) is False

def test_request_visibility(permissions, two_level_request):
    two_level_request.cc = ["u_hr"]
    assert permissions.can_view_request(User(username="u_emp"), two_level_request)
    assert permissions.can_view_request(User(username="u_admin", role="Admin"), two_level_request)
    assert permissions.can_view_request(User(username="u_mgr", role="Manager"), two_level_request)
    assert permissions.can_view_request(User(username="u_hr"), two_level_request)
    assert not permissions.can_view_request(User(username="u_other"), two_level_request)
