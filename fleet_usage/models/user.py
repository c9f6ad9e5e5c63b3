from sqlalchemy import Column, String, Boolean, Enum
from fleet_usage.models.base import BaseModel
from fleet_usage.core.enums import UserRole


class User(BaseModel):
    __tablename__ = "users"
    name = Column(String(120), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.OPERATOR)
    is_active = Column(Boolean, nullable=False, default=True)
