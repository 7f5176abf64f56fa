import logging
from typing import List, Optional, Protocol

from hrms.models.request import ApprovalStep, RequestType, StepStatus, StepRole
from hrms.models.user import Employee, Department, Role
from hrms.models.workflow import Workflow, WorkflowStep, ApproverType
from hrms.workflow.errors import NoWorkflowConfigured, UnresolvedApprover, NotAuthorized

logger = logging.getLogger(__name__)


class OrgDirectory(Protocol):
    """Read-only view of users and departments the resolver needs."""

    async def get_user(self, user_id: str) -> Optional[Employee]: ...

    async def get_department(self, department_id: str) -> Optional[Department]: ...

    async def find_admin(self) -> Optional[Employee]: ...


class WorkflowSource(Protocol):
    async def get_active_workflow(self, request_type: RequestType, department_id: Optional[str] = None) -> Optional[Workflow]: ...


class RepositoryDirectory:
    """OrgDirectory backed by the user and department repositories."""

    def __init__(self, users, departments):
        self.users = users
        self.departments = departments

    async def get_user(self, user_id: str) -> Optional[Employee]:
        return await self.users.get_user(user_id)

    async def get_department(self, department_id: str) -> Optional[Department]:
        return await self.departments.get_department(department_id)

    async def find_admin(self) -> Optional[Employee]:
        admins = await self.users.find_admins()
        return admins[0] if admins else None


async def _department_head(directory: OrgDirectory, department_id: Optional[str]) -> Optional[Employee]:
    if not department_id:
        return None
    dept = await directory.get_department(department_id)
    if not dept or not dept.manager_id:
        return None
    return await directory.get_user(dept.manager_id)


async def _resolve_step(step: WorkflowStep, submitter: Employee, directory: OrgDirectory) -> Optional[Employee]:
    if step.approver_type == ApproverType.DIRECT_MANAGER:
        return await directory.get_user(submitter.manager_id) if submitter.manager_id else None
    if step.approver_type == ApproverType.DEPARTMENT_HEAD:
        return await _department_head(directory, submitter.department_id)
    if step.approver_type == ApproverType.SPECIFIC_DEPARTMENT_HEAD:
        return await _department_head(directory, step.department_id)
    if step.approver_type == ApproverType.SPECIFIC_USER:
        return await directory.get_user(step.approver_id) if step.approver_id else None
    raise UnresolvedApprover(f"Unknown approver type {step.approver_type}")


async def resolve_approval_flow(workflow: Workflow, submitter: Employee, directory: OrgDirectory) -> List[ApprovalStep]:
    """
    Turn a workflow template into the concrete, ordered approval chain for one
    submitter. Optional steps that cannot be resolved are dropped.
    """
    flow = []
    for step in sorted(workflow.approval_flow, key=lambda s: s.level):
        approver = await _resolve_step(step, submitter, directory)
        if approver is None:
            if step.is_required:
                raise UnresolvedApprover(
                    f"Could not resolve approver for step '{step.display_name}' "
                    f"({step.approver_type.value}) of workflow '{workflow.name}'"
                )
            logger.info(f"Skipping optional step '{step.display_name}' for {submitter.user_id}")
            continue

        flow.append(ApprovalStep(
            level=step.level,
            approver_id=approver.user_id,
            approver_name=approver.full_name,
            approver_email=approver.email,
            role=step.role,
            status=StepStatus.PENDING,
        ))

    if not any(s.role == StepRole.APPROVER for s in flow):
        raise UnresolvedApprover(f"Workflow '{workflow.name}' resolved to no approvers")
    return flow


async def build_approval_flow(request_type: RequestType, submitter: Employee,
                              workflows: WorkflowSource, directory: OrgDirectory) -> List[ApprovalStep]:
    """Approval chain for a new request, including the role-based shortcuts."""
    if submitter.role == Role.ADMIN:
        raise NotAuthorized("Admins approve requests; they cannot submit them")

    if submitter.role == Role.MANAGER:
        # Managers' requests go straight to an admin.
        admin = await directory.find_admin()
        if not admin:
            raise UnresolvedApprover("No active Admin available to approve a manager's request")
        return [ApprovalStep(
            level=1,
            approver_id=admin.user_id,
            approver_name=admin.full_name,
            approver_email=admin.email,
        )]

    workflow = await workflows.get_active_workflow(request_type, submitter.department_id)
    if not workflow:
        raise NoWorkflowConfigured(request_type.value)
    return await resolve_approval_flow(workflow, submitter, directory)
