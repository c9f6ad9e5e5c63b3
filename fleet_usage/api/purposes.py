from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import List

from fleet_usage.db.session import get_db
from fleet_usage.models.purpose import Purpose
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.user import User
from fleet_usage.schemas.purpose import PurposeCreate, PurposeUpdate, PurposeOut
from fleet_usage.core.security import get_current_user, require_admin
from fleet_usage.core.audit_decorator import audit_log
from fleet_usage.core.checks import check_not_found, check_unique
from fleet_usage.core.enums import AuditAction
from fleet_usage.core.response_builders import build_purpose_response, build_response_list

router = APIRouter(prefix="/purposes", tags=["purposes"])


@router.post("/", response_model=PurposeOut)
@audit_log(AuditAction.CREATE_PURPOSE)
async def create_purpose(
    payload: PurposeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    name = payload.name.strip()
    await check_unique(db, Purpose, Purpose.name, name, "Purpose")
    purpose = Purpose(name=name)
    db.add(purpose)
    await db.commit()
    await db.refresh(purpose)
    return build_purpose_response(purpose)


@router.get("/", response_model=List[PurposeOut])
async def list_purposes(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    res = await db.execute(select(Purpose).order_by(Purpose.name))
    return build_response_list(build_purpose_response, res.scalars().all())


@router.get("/{purpose_id}", response_model=PurposeOut)
async def get_purpose(
    purpose_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    res = await db.execute(select(Purpose).where(Purpose.id == purpose_id))
    purpose = res.scalars().first()
    check_not_found(purpose, "Purpose", purpose_id)
    return build_purpose_response(purpose)


@router.put("/{purpose_id}", response_model=PurposeOut)
@audit_log(AuditAction.UPDATE_PURPOSE)
async def update_purpose(
    purpose_id: int,
    payload: PurposeUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    res = await db.execute(select(Purpose).where(Purpose.id == purpose_id))
    purpose = res.scalars().first()
    check_not_found(purpose, "Purpose", purpose_id)

    if payload.name:
        name = payload.name.strip()
        await check_unique(db, Purpose, Purpose.name, name, "Purpose", exclude_id=purpose_id)
        purpose.name = name

    db.add(purpose)
    await db.commit()
    await db.refresh(purpose)
    return build_purpose_response(purpose)


@router.delete("/{purpose_id}")
@audit_log(AuditAction.DELETE_PURPOSE)
async def delete_purpose(
    purpose_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    res = await db.execute(select(Purpose).where(Purpose.id == purpose_id))
    purpose = res.scalars().first()
    check_not_found(purpose, "Purpose", purpose_id)

    in_use = await db.scalar(select(func.count(TripRequest.id)).where(TripRequest.purpose_id == purpose_id))
    if in_use:
        raise HTTPException(status_code=409, detail=f"Purpose {purpose_id} is referenced by {in_use} trip(s)")

    await db.delete(purpose)
    await db.commit()
    return {"deleted": True}
