from sqlalchemy import Column, String
from fleet_usage.models.base import BaseModel


class Purpose(BaseModel):
    __tablename__ = "purposes"
    name = Column(String(120), unique=True, nullable=False)
