from sqlalchemy import Column, String, Integer, Boolean, Enum, CheckConstraint
from fleet_usage.models.base import BaseModel
from fleet_usage.core.enums import FuelType


class Vehicle(BaseModel):
    __tablename__ = "vehicles"
    __table_args__ = (
        CheckConstraint("current_odometer >= 0", name="ck_vehicles_odometer_non_negative"),
    )

    model = Column(String(120), nullable=False)
    plate = Column(String(20), unique=True, nullable=False, index=True)
    year = Column(Integer, nullable=False)
    fuel_type = Column(Enum(FuelType), nullable=False)
    current_odometer = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
