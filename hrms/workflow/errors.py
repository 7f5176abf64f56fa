class WorkflowError(Exception):
    """Base class for approval workflow failures surfaced to the caller."""
    status_code = 400
    code = "WORKFLOW_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"message": self.message, "code": self.code}


class NotYourTurn(WorkflowError):
    status_code = 409
    code = "NOT_YOUR_TURN"

    def __init__(self, request_id: str, user_id: str):
        super().__init__(f"It is not {user_id}'s turn to act on request {request_id}")


class RequestNotPending(WorkflowError):
    status_code = 409
    code = "REQUEST_NOT_PENDING"

    def __init__(self, request_id: str, status: str):
        super().__init__(f"Request {request_id} is {status} and cannot be actioned")


class RequestAlreadyFinalized(WorkflowError):
    status_code = 409
    code = "REQUEST_ALREADY_FINALIZED"

    def __init__(self, request_id: str, status: str):
        super().__init__(f"Request {request_id} is already {status}")


class MissingReason(WorkflowError):
    code = "MISSING_REASON"

    def __init__(self, action: str):
        super().__init__(f"A non-empty reason is required to {action}")


class NoWorkflowConfigured(WorkflowError):
    code = "NO_WORKFLOW_CONFIGURED"

    def __init__(self, request_type: str):
        super().__init__(f"No active approval workflow for request type {request_type}")


class UnresolvedApprover(WorkflowError):
    code = "UNRESOLVED_APPROVER"


class NotAuthorized(WorkflowError):
    status_code = 403
    code = "NOT_AUTHORIZED"


class InvalidTransition(WorkflowError):
    code = "INVALID_TRANSITION"


class RequestNotFound(WorkflowError):
    status_code = 404
    code = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        super().__init__(f"Request {request_id} not found")


class StaleRequest(WorkflowError):
    status_code = 409
    code = "STALE_REQUEST"

    def __init__(self, request_id: str):
        super().__init__(f"Request {request_id} was modified concurrently; reload and retry")
