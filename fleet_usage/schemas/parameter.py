from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime
from fleet_usage.core.enums import FuelType


class ParameterUpdate(BaseModel):
    legal_name: Optional[str] = None
    trade_name: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    responsible: Optional[str] = None
    is_active: Optional[bool] = None
    fuel_prices: Optional[Dict[FuelType, float]] = None


class ParameterOut(BaseModel):
    id: Optional[int] = None
    legal_name: Optional[str] = None
    trade_name: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    responsible: Optional[str] = None
    is_active: bool = True
    fuel_prices: Dict[FuelType, float] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None
