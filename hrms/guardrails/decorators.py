from functools import wraps
from fastapi import HTTPException, Depends
from pydantic import ValidationError
from hrms.api.auth import get_current_active_user, User
from hrms.guardrails.permissions import permission_checker, Permission
from hrms.workflow.errors import WorkflowError

def require_permission(permission: Permission):
    """
    Dependency to check static permission.
    """
    def check(user: User = Depends(get_current_active_user)):
        if not permission_checker.check_permission(user, permission):
            raise HTTPException(
                status_code=403,
                detail=f"Permission denied: {permission.value} required"
            )
        return user
    return check

def workflow_errors(func):
    """
    Translate domain errors raised by a route into HTTP errors carrying
    a message and a machine readable code.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except WorkflowError as e:
            raise HTTPException(status_code=e.status_code, detail=e.to_detail())
        except ValidationError as e:
            raise HTTPException(status_code=422, detail={"message": str(e), "code": "VALIDATION_ERROR"})
    return wrapper
