from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional

from school_portal.db.models import UserRole


class UserBase(BaseModel):
    email: str
    full_name: Optional[str] = None
    role: UserRole = UserRole.STUDENT
    student_code: Optional[str] = None
    class_name: Optional[str] = None
    is_active: bool = True
    is_blocked: bool = False


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str
    password: str
    role: UserRole = UserRole.STUDENT
    student_code: Optional[str] = None
    class_name: Optional[str] = None
    is_active: bool = True
    is_blocked: bool = False


class StudentRegister(BaseModel):
    email: EmailStr
    full_name: str
    password: str
    student_code: Optional[str] = None
    class_name: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: str | None = None
    role: UserRole | None = None
    student_code: Optional[str] = None
    class_name: Optional[str] = None
    is_active: bool | None = None
    is_blocked: Optional[bool] = None
    new_password: Optional[str] = None

    # role, is_active e is_blocked son NOT NULL: se pueden omitir, no anular
    @field_validator("role", "is_active", "is_blocked")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class UserRead(UserBase):
    id: int

    class Config:
        from_attributes = True  # pydantic v2


class StudentSummary(BaseModel):
    """Atributos del alumno que se muestran en las tablas de los dashboards."""

    id: int
    full_name: Optional[str] = None
    student_code: Optional[str] = None
    class_name: Optional[str] = None

    class Config:
        from_attributes = True
