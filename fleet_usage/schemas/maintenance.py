from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime


class MaintenanceCreate(BaseModel):
    vehicle_id: int
    maintenance_date: date
    description: str = Field(..., min_length=1)
    cost: float = Field(0.0, ge=0)


class MaintenanceUpdate(BaseModel):
    vehicle_id: Optional[int] = None
    maintenance_date: Optional[date] = None
    description: Optional[str] = None
    cost: Optional[float] = Field(None, ge=0)


class MaintenanceOut(BaseModel):
    id: int
    vehicle_id: int
    maintenance_date: date
    description: str
    cost: float
    created_at: datetime
    updated_at: Optional[datetime] = None
