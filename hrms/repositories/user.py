from typing import List, Optional
from hrms.repositories.base import BaseRepository
from hrms.models.user import Employee, Department, Role, EmployeeStatus

class UserRepository(BaseRepository[Employee]):

    async def get_user(self, user_id: str) -> Optional[Employee]:
        return await self.get_by_field("user_id", user_id)

    async def get_by_email(self, email: str) -> Optional[Employee]:
        return await self.get_by_field("email", email)

    async def find_active(self, roles: List[Role]) -> List[Employee]:
        return await self.find({
            "status": EmployeeStatus.ACTIVE.value,
            "role": {"$in": [r.value for r in roles]},
        })

    async def find_admins(self) -> List[Employee]:
        return await self.find_active([Role.ADMIN])

    async def find_by_department(self, department_id: str) -> List[Employee]:
        return await self.find({"department_id": department_id, "status": EmployeeStatus.ACTIVE.value})

class DepartmentRepository(BaseRepository[Department]):

    async def get_department(self, department_id: str) -> Optional[Department]:
        return await self.get_by_field("department_id", department_id)
