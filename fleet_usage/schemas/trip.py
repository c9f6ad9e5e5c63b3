from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from fleet_usage.core.enums import TripStatus, FuelType


class TripCreate(BaseModel):
    vehicle_id: int
    purpose_id: int
    destination: str


class TripComplete(BaseModel):
    end_odometer: int
    fuel_liters: float = 0.0
    fuel_type_refilled: Optional[FuelType] = None
    notes: Optional[str] = None


class TripNotesUpdate(BaseModel):
    notes: Optional[str] = None


class TripOut(BaseModel):
    id: int
    requester_id: int
    vehicle_id: int
    purpose_id: int
    approved_by: Optional[int] = None
    destination: str
    status: TripStatus
    requested_at: datetime
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    start_odometer: Optional[int] = None
    end_odometer: Optional[int] = None
    distance_km: Optional[int] = None
    fuel_liters: Optional[float] = None
    fuel_type_refilled: Optional[FuelType] = None
    fuel_price_per_liter: Optional[float] = None
    refuel_cost: Optional[float] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
