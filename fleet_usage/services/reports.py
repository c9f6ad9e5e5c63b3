"""Read-only projections over completed trips and maintenance records."""
import logging
from datetime import date, datetime, time, timedelta, timezone
from operator import attrgetter
from typing import Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from fleet_usage.core.enums import IN_FLIGHT_STATUSES, TripStatus
from fleet_usage.core.exceptions import ValidationError
from fleet_usage.models.maintenance import Maintenance
from fleet_usage.models.purpose import Purpose
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.services.consumption import Aggregation, aggregate_by_key, round_half_up

logger = logging.getLogger(__name__)

GROUP_KEYS = {
    "vehicle": attrgetter("vehicle_id"),
    "user": attrgetter("requester_id"),
    "purpose": attrgetter("purpose_id"),
}


def vehicle_label(vehicle: Optional[Vehicle]) -> str:
    if vehicle is None:
        return "Unknown vehicle"
    return f"{vehicle.model} ({vehicle.plate})"


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


async def _labels(db: AsyncSession, group_by: str) -> dict:
    if group_by == "vehicle":
        res = await db.execute(select(Vehicle))
        return {v.id: vehicle_label(v) for v in res.scalars().all()}
    if group_by == "user":
        res = await db.execute(select(User))
        return {u.id: u.name for u in res.scalars().all()}
    res = await db.execute(select(Purpose))
    return {p.id: p.name for p in res.scalars().all()}


async def consumption_report(
    db: AsyncSession,
    group_by: str = "vehicle",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Aggregation:
    """Distance, liters and cost of completed trips, grouped by vehicle, user or purpose."""
    if group_by not in GROUP_KEYS:
        raise ValidationError(f"group_by must be one of {sorted(GROUP_KEYS)}")
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from must not be after date_to")

    q = select(TripRequest).where(TripRequest.status == TripStatus.COMPLETED)
    if date_from:
        q = q.where(TripRequest.completed_at >= _start_of(date_from))
    if date_to:
        q = q.where(TripRequest.completed_at < _start_of(date_to + timedelta(days=1)))
    res = await db.execute(q)
    trips = res.scalars().all()

    labels = await _labels(db, group_by)
    report = aggregate_by_key(
        trips,
        GROUP_KEYS[group_by],
        lambda key: labels.get(key, f"#{key}"),
    )
    logger.info(f"Consumption report by {group_by}: {len(report.rows)} groups, {len(trips)} trips")
    return report


async def maintenance_report(db: AsyncSession) -> tuple:
    res = await db.execute(
        select(
            Maintenance.vehicle_id,
            func.count(Maintenance.id),
            func.sum(Maintenance.cost),
        ).group_by(Maintenance.vehicle_id)
    )
    grouped = res.all()

    vehicles = await db.execute(select(Vehicle))
    labels = {v.id: vehicle_label(v) for v in vehicles.scalars().all()}

    rows = sorted(
        (
            {
                "vehicle_id": vehicle_id,
                "label": labels.get(vehicle_id, vehicle_label(None)),
                "record_count": count,
                "total_cost": round_half_up(total or 0.0),
            }
            for vehicle_id, count, total in grouped
        ),
        key=lambda row: row["label"],
    )
    total_cost = round_half_up(sum(row["total_cost"] for row in rows))
    return rows, total_cost


async def dashboard(db: AsyncSession, latest: int = 5) -> dict:
    total_vehicles = await db.scalar(select(func.count(Vehicle.id)))
    pending = await db.scalar(
        select(func.count(TripRequest.id)).where(TripRequest.status == TripStatus.PENDING)
    )
    active = await db.scalar(
        select(func.count(TripRequest.id)).where(
            TripRequest.status.in_(IN_FLIGHT_STATUSES)
        )
    )

    res = await db.execute(
        select(TripRequest, Vehicle, User)
        .join(Vehicle, TripRequest.vehicle_id == Vehicle.id)
        .join(User, TripRequest.requester_id == User.id)
        .where(TripRequest.status == TripStatus.COMPLETED)
        .order_by(TripRequest.completed_at.desc())
        .limit(latest)
    )
    recent = [
        {
            "id": trip.id,
            "vehicle_label": vehicle_label(vehicle),
            "requester_name": user.name,
            "destination": trip.destination,
            "status": trip.status,
            "distance_km": trip.distance_km,
            "completed_at": trip.completed_at,
        }
        for trip, vehicle, user in res.all()
    ]
    return {
        "total_vehicles": total_vehicles or 0,
        "pending_requests": pending or 0,
        "active_trips": active or 0,
        "latest_completed": recent,
    }
