import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional, List

from fleet_usage.db.session import get_db
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.schemas.vehicle import VehicleCreate, VehicleUpdate, VehicleOut
from fleet_usage.core.security import get_current_user, require_admin
from fleet_usage.core.audit_decorator import audit_log
from fleet_usage.core.checks import check_not_found, check_unique
from fleet_usage.core.enums import AuditAction, IN_FLIGHT_STATUSES
from fleet_usage.core.exceptions import ValidationError
from fleet_usage.core.response_builders import build_vehicle_response, build_response_list

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post("/", response_model=VehicleOut)
@audit_log(AuditAction.CREATE_VEHICLE)
async def create_vehicle(
    payload: VehicleCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    plate = payload.plate.strip().upper()
    await check_unique(db, Vehicle, Vehicle.plate, plate, "Vehicle plate")

    vehicle = Vehicle(**{**payload.model_dump(), "plate": plate})
    db.add(vehicle)
    await db.commit()
    await db.refresh(vehicle)
    logger.info(f"Vehicle {vehicle.id} ({vehicle.plate}) registered at odometer {vehicle.current_odometer}")
    return build_vehicle_response(vehicle)


@router.get("/", response_model=List[VehicleOut])
async def list_vehicles(
    active: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    q = select(Vehicle)
    if active is not None:
        q = q.where(Vehicle.is_active == active)
    q = q.order_by(Vehicle.plate).limit(limit).offset(offset)
    res = await db.execute(q)
    return build_response_list(build_vehicle_response, res.scalars().all())


@router.get("/{vehicle_id}", response_model=VehicleOut)
async def get_vehicle(
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    res = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
    vehicle = res.scalars().first()
    check_not_found(vehicle, "Vehicle", vehicle_id)
    return build_vehicle_response(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleOut)
@audit_log(AuditAction.UPDATE_VEHICLE)
async def update_vehicle(
    vehicle_id: int,
    payload: VehicleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Administrative edit. The odometer never goes down and is frozen while a trip is in flight."""
    res = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id))
    vehicle = res.scalars().first()
    check_not_found(vehicle, "Vehicle", vehicle_id)

    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("plate"):
        changes["plate"] = changes["plate"].strip().upper()
        await check_unique(db, Vehicle, Vehicle.plate, changes["plate"], "Vehicle plate", exclude_id=vehicle_id)

    new_odometer = changes.get("current_odometer")
    if new_odometer is not None and new_odometer != vehicle.current_odometer:
        if new_odometer < vehicle.current_odometer:
            raise ValidationError(
                f"odometer cannot decrease from {vehicle.current_odometer} to {new_odometer}"
            )
        in_flight = await db.scalar(
            select(func.count(TripRequest.id)).where(
                TripRequest.vehicle_id == vehicle_id,
                TripRequest.status.in_(IN_FLIGHT_STATUSES),
            )
        )
        if in_flight:
            raise HTTPException(
                status_code=409,
                detail=f"Vehicle {vehicle_id} has {in_flight} trip(s) in progress; odometer is locked",
            )

    for field, value in changes.items():
        setattr(vehicle, field, value)

    db.add(vehicle)
    await db.commit()
    await db.refresh(vehicle)
    return build_vehicle_response(vehicle)
