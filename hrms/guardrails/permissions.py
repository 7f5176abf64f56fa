from enum import Enum
import logging
from hrms.api.auth import User
from hrms.models.request import Request
from hrms.models.user import Role

logger = logging.getLogger(__name__)

class Permission(str, Enum):
    # Request actions
    SUBMIT_REQUEST = "SUBMIT_REQUEST"
    VIEW_REQUEST = "VIEW_REQUEST"
    APPROVE_REQUEST = "APPROVE_REQUEST"
    OVERRIDE_DECISION = "OVERRIDE_DECISION"

    # Admin
    MANAGE_WORKFLOWS = "MANAGE_WORKFLOWS"
    CONFIGURE_SYSTEM = "CONFIGURE_SYSTEM"
    RUN_JOBS = "RUN_JOBS"
    VIEW_DASHBOARD = "VIEW_DASHBOARD"

# Role -> Permissions Mapping
ROLE_PERMISSIONS = {
    Role.ADMIN: [p for p in Permission if p != Permission.SUBMIT_REQUEST],
    Role.MANAGER: [
        Permission.SUBMIT_REQUEST, Permission.VIEW_REQUEST, Permission.APPROVE_REQUEST,
        Permission.VIEW_DASHBOARD,
    ],
    # Employees can still approve when a workflow names them explicitly.
    Role.EMPLOYEE: [
        Permission.SUBMIT_REQUEST, Permission.VIEW_REQUEST, Permission.APPROVE_REQUEST,
    ],
}

class PermissionChecker:

    def check_permission(self, user: User, permission: Permission) -> bool:
        """
        Basic Role-Based Check.
        """
        try:
            role_enum = Role(user.role)
        except ValueError:
            logger.warning(f"Unknown role {user.role} for user {user.username}")
            return False

        if permission in ROLE_PERMISSIONS.get(role_enum, []):
            return True

        logger.warning(f"User {user.username} ({user.role}) denied permission {permission.value}")
        return False

    def can_view_request(self, user: User, request: Request) -> bool:
        """Submitter, anyone in the approval chain, CC'd users and Admins."""
        if user.role == Role.ADMIN.value:
            return True
        if user.username == request.submitted_by or user.username in request.cc:
            return True
        return any(s.approver_id == user.username for s in request.approval_flow)

permission_checker = PermissionChecker()
