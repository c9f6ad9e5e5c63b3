from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PurposeCreate(BaseModel):
    name: str = Field(..., min_length=1)


class PurposeUpdate(BaseModel):
    name: Optional[str] = None


class PurposeOut(BaseModel):
    id: int
    name: str
    created_at: datetime
    updated_at: Optional[datetime] = None
