from sqlalchemy import Column, String, Float, Date, ForeignKey
from sqlalchemy.orm import relationship
from fleet_usage.models.base import BaseModel


class Maintenance(BaseModel):
    __tablename__ = "maintenance"

    vehicle_id = Column(ForeignKey("vehicles.id"), nullable=False, index=True)
    vehicle = relationship("Vehicle", backref="maintenance_records")

    maintenance_date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    cost = Column(Float, nullable=False, default=0.0)
