from enum import Enum
from typing import Optional
from hrms.models.base import MongoModel

class Role(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"

class EmployeeStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"

class Employee(MongoModel):
    """Org directory entry: the subset of the user profile the workflow core reads."""
    user_id: str
    full_name: str
    email: str
    role: Role = Role.EMPLOYEE
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    manager_id: Optional[str] = None
    avatar: Optional[str] = None

class Department(MongoModel):
    department_id: str
    department_name: str
    manager_id: Optional[str] = None
