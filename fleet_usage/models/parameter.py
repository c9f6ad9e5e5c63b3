from sqlalchemy import Column, String, Boolean, JSON
from fleet_usage.models.base import BaseModel


class Parameter(BaseModel):
    """Singleton configuration row: company identity and fuel prices."""

    __tablename__ = "parameters"

    legal_name = Column(String(200), nullable=True)
    trade_name = Column(String(200), nullable=True)
    tax_id = Column(String(40), nullable=True)
    address = Column(String(255), nullable=True)
    phone = Column(String(40), nullable=True)
    responsible = Column(String(120), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # {FuelType value: price per liter}
    fuel_prices = Column(JSON, nullable=False, default=dict)
