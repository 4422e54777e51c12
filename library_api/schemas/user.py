from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr

from library_api.db.models import UserRole


class UserRegister(BaseModel):
    email: EmailStr
    full_name: str
    password: str


class UserCreate(UserRegister):
    role: UserRole = UserRole.PATRON
    is_active: bool = True


class UserRead(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
