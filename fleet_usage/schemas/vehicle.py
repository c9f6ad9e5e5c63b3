from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from fleet_usage.core.enums import FuelType


class VehicleCreate(BaseModel):
    model: str = Field(..., min_length=1)
    plate: str = Field(..., min_length=1)
    year: int = Field(..., ge=1900)
    fuel_type: FuelType
    current_odometer: int = Field(0, ge=0)
    is_active: bool = True


class VehicleUpdate(BaseModel):
    model: Optional[str] = None
    plate: Optional[str] = None
    year: Optional[int] = Field(None, ge=1900)
    fuel_type: Optional[FuelType] = None
    current_odometer: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class VehicleOut(BaseModel):
    id: int
    model: str
    plate: str
    year: int
    fuel_type: FuelType
    current_odometer: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
