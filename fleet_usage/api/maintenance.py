from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional, List

from fleet_usage.db.session import get_db
from fleet_usage.models.maintenance import Maintenance
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.schemas.maintenance import MaintenanceCreate, MaintenanceUpdate, MaintenanceOut
from fleet_usage.core.security import get_current_user, require_admin
from fleet_usage.core.audit_decorator import audit_log
from fleet_usage.core.checks import check_not_found
from fleet_usage.core.enums import AuditAction
from fleet_usage.core.response_builders import build_maintenance_response, build_response_list

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


async def _check_vehicle(db: AsyncSession, vehicle_id: int) -> None:
    res = await db.execute(select(Vehicle.id).where(Vehicle.id == vehicle_id))
    check_not_found(res.scalar(), "Vehicle", vehicle_id)


@router.post("/", response_model=MaintenanceOut)
@audit_log(AuditAction.CREATE_MAINTENANCE)
async def create_maintenance(
    payload: MaintenanceCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    await _check_vehicle(db, payload.vehicle_id)
    record = Maintenance(**payload.model_dump())
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return build_maintenance_response(record)


@router.get("/", response_model=List[MaintenanceOut])
async def list_maintenance(
    vehicle_id: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    q = select(Maintenance)
    if vehicle_id:
        q = q.where(Maintenance.vehicle_id == vehicle_id)
    q = q.order_by(Maintenance.maintenance_date.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return build_response_list(build_maintenance_response, res.scalars().all())


@router.get("/{maintenance_id}", response_model=MaintenanceOut)
async def get_maintenance(
    maintenance_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    res = await db.execute(select(Maintenance).where(Maintenance.id == maintenance_id))
    record = res.scalars().first()
    check_not_found(record, "Maintenance", maintenance_id)
    return build_maintenance_response(record)


@router.put("/{maintenance_id}", response_model=MaintenanceOut)
@audit_log(AuditAction.UPDATE_MAINTENANCE)
async def update_maintenance(
    maintenance_id: int,
    payload: MaintenanceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    res = await db.execute(select(Maintenance).where(Maintenance.id == maintenance_id))
    record = res.scalars().first()
    check_not_found(record, "Maintenance", maintenance_id)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("vehicle_id"):
        await _check_vehicle(db, changes["vehicle_id"])
    for field, value in changes.items():
        setattr(record, field, value)

    db.add(record)
    await db.commit()
    await db.refresh(record)
    return build_maintenance_response(record)


@router.delete("/{maintenance_id}")
@audit_log(AuditAction.DELETE_MAINTENANCE)
async def delete_maintenance(
    maintenance_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    res = await db.execute(select(Maintenance).where(Maintenance.id == maintenance_id))
    record = res.scalars().first()
    check_not_found(record, "Maintenance", maintenance_id)

    await db.delete(record)
    await db.commit()
    return {"deleted": True}
