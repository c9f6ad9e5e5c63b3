from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from fleet_usage.core.enums import UserRole


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    role: UserRole = UserRole.OPERATOR


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserOut(BaseModel):
    id: int
    name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
