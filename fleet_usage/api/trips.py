from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional, List

from fleet_usage.db.session import get_db
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.user import User
from fleet_usage.schemas.trip import TripCreate, TripComplete, TripNotesUpdate, TripOut
from fleet_usage.core.security import get_current_user, identity_of, require_admin
from fleet_usage.core.audit_decorator import audit_log
from fleet_usage.core.enums import AuditAction, TripStatus
from fleet_usage.core.exceptions import NotFoundError
from fleet_usage.core.response_builders import build_trip_response, build_response_list
from fleet_usage.services.store import SqlAlchemyStore
from fleet_usage.services.trips import TripLifecycleEngine
from fleet_usage.utils.idempotency import get_idempotent, set_idempotent

router = APIRouter(prefix="/trips", tags=["trips"])


def get_engine(db: AsyncSession = Depends(get_db)) -> TripLifecycleEngine:
    return TripLifecycleEngine(SqlAlchemyStore(db))


@router.post("/", response_model=TripOut)
@audit_log(AuditAction.CREATE_TRIP)
async def create_trip(
    payload: TripCreate,
    idempotency_key: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    engine: TripLifecycleEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user)
):
    if idempotency_key:
        prev = await get_idempotent(current_user.id, idempotency_key)
        if prev:
            return prev

    trip = await engine.create_request(
        identity_of(current_user),
        payload.vehicle_id,
        payload.purpose_id,
        payload.destination,
    )

    out = build_trip_response(trip)
    if idempotency_key:
        await set_idempotent(current_user.id, idempotency_key, out.model_dump(mode="json"))
    return out


@router.get("/", response_model=List[TripOut])
async def list_trips(
    status: Optional[TripStatus] = Query(None),
    vehicle_id: Optional[int] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    q = select(TripRequest)
    if status:
        q = q.where(TripRequest.status == status)
    if vehicle_id:
        q = q.where(TripRequest.vehicle_id == vehicle_id)

    q = q.order_by(TripRequest.requested_at.desc()).limit(limit).offset(offset)
    res = await db.execute(q)
    return build_response_list(build_trip_response, res.scalars().all())


@router.get("/{trip_id}", response_model=TripOut)
async def get_trip(
    trip_id: int,
    engine: TripLifecycleEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user)
):
    trip = await engine.store.get_trip(trip_id)
    if trip is None:
        raise NotFoundError("Trip", trip_id)
    return build_trip_response(trip)


@router.post("/{trip_id}/approve", response_model=TripOut)
@audit_log(AuditAction.APPROVE_TRIP)
async def approve_trip(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    engine: TripLifecycleEngine = Depends(get_engine),
    current_user: User = Depends(require_admin)
):
    trip = await engine.approve(identity_of(current_user), trip_id)
    return build_trip_response(trip)


@router.post("/{trip_id}/deny", response_model=TripOut)
@audit_log(AuditAction.DENY_TRIP)
async def deny_trip(
    trip_id: int,
    db: AsyncSession = Depends(get_db),
    engine: TripLifecycleEngine = Depends(get_engine),
    current_user: User = Depends(require_admin)
):
    trip = await engine.deny(identity_of(current_user), trip_id)
    return build_trip_response(trip)


@router.post("/{trip_id}/complete", response_model=TripOut)
@audit_log(AuditAction.COMPLETE_TRIP)
async def complete_trip(
    trip_id: int,
    payload: TripComplete,
    db: AsyncSession = Depends(get_db),
    engine: TripLifecycleEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user)
):
    trip = await engine.complete(
        identity_of(current_user),
        trip_id,
        end_odometer=payload.end_odometer,
        fuel_liters=payload.fuel_liters,
        fuel_type_refilled=payload.fuel_type_refilled,
        notes=payload.notes,
    )
    return build_trip_response(trip)


@router.patch("/{trip_id}/notes", response_model=TripOut)
@audit_log(AuditAction.UPDATE_TRIP_NOTES)
async def update_trip_notes(
    trip_id: int,
    payload: TripNotesUpdate,
    db: AsyncSession = Depends(get_db),
    engine: TripLifecycleEngine = Depends(get_engine),
    current_user: User = Depends(get_current_user)
):
    trip = await engine.update_notes(identity_of(current_user), trip_id, payload.notes)
    return build_trip_response(trip)
