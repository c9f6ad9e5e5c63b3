from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from fleet_usage.models.base import BaseModel
from fleet_usage.core.enums import TripStatus, FuelType


class TripRequest(BaseModel):
    __tablename__ = "trip_requests"

    requester_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    vehicle_id = Column(ForeignKey("vehicles.id"), nullable=False, index=True)
    purpose_id = Column(ForeignKey("purposes.id"), nullable=False, index=True)
    approved_by = Column(ForeignKey("users.id"), nullable=True)

    requester = relationship("User", foreign_keys=[requester_id], backref="trip_requests")
    vehicle = relationship("Vehicle", backref="trip_requests")
    purpose = relationship("Purpose", backref="trip_requests")

    destination = Column(String(255), nullable=False)
    status = Column(Enum(TripStatus), default=TripStatus.PENDING, nullable=False, index=True)

    requested_at = Column(DateTime(timezone=True), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Snapshot of the vehicle odometer at approval.
    start_odometer = Column(Integer, nullable=True)
    end_odometer = Column(Integer, nullable=True)
    distance_km = Column(Integer, nullable=True)

    fuel_liters = Column(Float, nullable=True)
    fuel_type_refilled = Column(Enum(FuelType), nullable=True)
    # Price used for refuel_cost, frozen at completion.
    fuel_price_per_liter = Column(Float, nullable=True)
    refuel_cost = Column(Float, nullable=True)

    notes = Column(String, nullable=True)
