"""Small guards shared by the routers."""
from typing import Optional
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from fleet_usage.core.exceptions import NotFoundError


def check_not_found(item, resource_name: str = "Resource", resource_id: Optional[int] = None) -> None:
    if not item:
        raise NotFoundError(resource_name, resource_id)


async def check_unique(db: AsyncSession, model, column, value, resource_name: str, exclude_id: Optional[int] = None) -> None:
    q = select(model).where(column == value)
    if exclude_id is not None:
        q = q.where(model.id != exclude_id)
    res = await db.execute(q)
    if res.scalars().first():
        raise HTTPException(status_code=409, detail=f"{resource_name} '{value}' already exists")
