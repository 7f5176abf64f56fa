from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from pydantic import BaseModel

from hrms.config import settings
from hrms.database import db
from hrms.models.user import EmployeeStatus, Role

router = APIRouter(prefix="/api/auth", tags=["Auth"])

ALGORITHM = "HS256"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class User(BaseModel):
    """Authenticated principal carried in the access token."""
    username: str
    role: str = Role.EMPLOYEE.value
    full_name: Optional[str] = None
    email: Optional[str] = None
    department_id: Optional[str] = None
    disabled: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": user.username,
        "role": user.role,
        "name": user.full_name,
        "email": user.email,
        "dept": user.department_id,
        "exp": expire,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    username = payload.get("sub")
    if username is None:
        raise credentials_exception
    return User(
        username=username,
        role=payload.get("role") or Role.EMPLOYEE.value,
        full_name=payload.get("name"),
        email=payload.get("email"),
        department_id=payload.get("dept"),
    )


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


async def get_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return current_user


@router.post("/token", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    """
    Issue a token for an active user, looked up by e-mail or user id.
    Password verification belongs to the identity provider in front of this service,
    so tokens are only issued here in development.
    """
    if settings.ENVIRONMENT != "development":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Token issuance is only available in development"
        )

    employee = await db.users.get_by_email(form_data.username)
    if employee is None:
        employee = await db.users.get_user(form_data.username)
    if employee is None or employee.status != EmployeeStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = User(
        username=employee.user_id,
        role=employee.role.value,
        full_name=employee.full_name,
        email=employee.email,
        department_id=employee.department_id,
    )
    return Token(access_token=create_access_token(user))
