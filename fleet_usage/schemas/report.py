from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from fleet_usage.core.enums import TripStatus


class ConsumptionRow(BaseModel):
    key: Optional[int] = None
    label: str
    trip_count: int
    total_km: float
    total_liters: float
    total_cost: float
    avg_consumption: float


class ConsumptionReport(BaseModel):
    group_by: str
    rows: List[ConsumptionRow]
    totals: ConsumptionRow


class MaintenanceRow(BaseModel):
    vehicle_id: int
    label: str
    record_count: int
    total_cost: float


class MaintenanceReport(BaseModel):
    rows: List[MaintenanceRow]
    total_cost: float


class RecentTrip(BaseModel):
    id: int
    vehicle_label: str
    requester_name: str
    destination: str
    status: TripStatus
    distance_km: Optional[int] = None
    completed_at: Optional[datetime] = None


class DashboardOut(BaseModel):
    total_vehicles: int
    pending_requests: int
    active_trips: int
    latest_completed: List[RecentTrip]
