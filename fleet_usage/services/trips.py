"""Trip request lifecycle.

    pending --approve--> approved --complete--> completed
    pending --deny-----> denied

``in_use`` is a valid status value but no operation enters or leaves it.
Every status change is a compare-and-set on the current status, so two
callers racing on the same trip get exactly one success.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fleet_usage.core.enums import FuelType, TripStatus
from fleet_usage.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PartialCompletionError,
    StorageError,
    ValidationError,
)
from fleet_usage.core.identity import RequesterIdentity
from fleet_usage.core.metrics import partial_completions, trip_transitions, trip_transitions_rejected
from fleet_usage.models.base import utcnow
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.services.consumption import compute_distance, compute_refuel_cost, price_for, round_half_up
from fleet_usage.services.store import EntityStore

logger = logging.getLogger(__name__)


class TripLifecycleEngine:

    def __init__(self, store: EntityStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    async def create_request(
        self,
        identity: RequesterIdentity,
        vehicle_id: Optional[int],
        purpose_id: Optional[int],
        destination: Optional[str],
    ) -> TripRequest:
        destination = (destination or "").strip()
        if not destination:
            raise ValidationError("destination is required")
        if vehicle_id is None:
            raise ValidationError("vehicle is required")
        if purpose_id is None:
            raise ValidationError("purpose is required")

        requester = await self.store.get_user(identity.user_id)
        if requester is None:
            raise NotFoundError("User", identity.user_id)
        if not requester.is_active:
            raise ValidationError(f"requester {identity.user_id} is inactive")

        vehicle = await self._get_vehicle(vehicle_id)
        if not vehicle.is_active:
            raise ValidationError(f"vehicle {vehicle_id} is inactive")

        if await self.store.get_purpose(purpose_id) is None:
            raise NotFoundError("Purpose", purpose_id)

        trip = await self.store.create_trip({
            "requester_id": identity.user_id,
            "vehicle_id": vehicle_id,
            "purpose_id": purpose_id,
            "destination": destination,
            "status": TripStatus.PENDING,
            "requested_at": self._clock(),
        })
        logger.info(f"Trip {trip.id} requested by user {identity.user_id} for vehicle {vehicle_id}")
        return trip

    async def approve(self, identity: RequesterIdentity, trip_id: int) -> TripRequest:
        trip = await self._get_trip(trip_id)
        self._ensure_status(trip, TripStatus.PENDING, TripStatus.APPROVED)
        vehicle = await self._get_vehicle(trip.vehicle_id)

        await self._transition(trip, TripStatus.PENDING, {
            "status": TripStatus.APPROVED,
            "start_odometer": vehicle.current_odometer,
            "approved_at": self._clock(),
            "approved_by": identity.user_id,
        })
        logger.info(
            f"Trip {trip_id} approved by user {identity.user_id}, "
            f"start odometer {vehicle.current_odometer}"
        )
        return await self._get_trip(trip_id)

    async def deny(self, identity: RequesterIdentity, trip_id: int) -> TripRequest:
        trip = await self._get_trip(trip_id)
        self._ensure_status(trip, TripStatus.PENDING, TripStatus.DENIED)

        await self._transition(trip, TripStatus.PENDING, {"status": TripStatus.DENIED})
        logger.info(f"Trip {trip_id} denied by user {identity.user_id}")
        return await self._get_trip(trip_id)

    async def complete(
        self,
        identity: RequesterIdentity,
        trip_id: int,
        end_odometer: int,
        fuel_liters: Optional[float] = 0.0,
        fuel_type_refilled: Optional[FuelType] = None,
        notes: Optional[str] = None,
    ) -> TripRequest:
        """Close an approved trip and move the vehicle odometer to ``end_odometer``.

        The trip write and the vehicle write are one unit. On a transactional
        store they share a transaction; otherwise a failed vehicle write after
        a successful trip write raises PartialCompletionError.
        """
        if end_odometer is None or end_odometer < 0:
            raise ValidationError("invalid final odometer: must be a non-negative integer")
        fuel_liters = fuel_liters or 0.0
        if fuel_liters < 0:
            raise ValidationError("fuel liters cannot be negative")

        trip = await self._get_trip(trip_id)
        self._ensure_status(trip, TripStatus.APPROVED, TripStatus.COMPLETED)
        if trip.start_odometer is None:
            raise ValidationError(f"trip {trip_id} has no start odometer")
        if end_odometer < trip.start_odometer:
            raise ValidationError(
                f"invalid final odometer: {end_odometer} is below the start odometer {trip.start_odometer}"
            )

        vehicle = await self._get_vehicle(trip.vehicle_id)
        if end_odometer < vehicle.current_odometer:
            # Another trip on this vehicle completed first; last commit wins.
            logger.warning(
                f"Completing trip {trip_id} moves vehicle {vehicle.id} odometer back "
                f"from {vehicle.current_odometer} to {end_odometer}"
            )

        patch = {
            "status": TripStatus.COMPLETED,
            "completed_at": self._clock(),
            "end_odometer": end_odometer,
            "distance_km": compute_distance(trip.start_odometer, end_odometer),
            "fuel_liters": fuel_liters,
            "fuel_type_refilled": fuel_type_refilled,
            "fuel_price_per_liter": None,
            "refuel_cost": 0.0,
            "notes": notes,
        }
        if fuel_liters > 0 and fuel_type_refilled is not None:
            prices = await self.store.get_fuel_prices()
            patch["fuel_price_per_liter"] = price_for(fuel_type_refilled, prices)
            patch["refuel_cost"] = compute_refuel_cost(fuel_liters, fuel_type_refilled, prices)

        if self.store.transactional:
            async with self.store.transaction():
                await self._transition(trip, TripStatus.APPROVED, patch)
                if not await self.store.update_vehicle_odometer(vehicle.id, end_odometer):
                    raise NotFoundError("Vehicle", vehicle.id)
        else:
            await self._transition(trip, TripStatus.APPROVED, patch)
            await self._push_odometer(trip, vehicle, end_odometer)

        logger.info(
            f"Trip {trip_id} completed by user {identity.user_id}: "
            f"{patch['distance_km']} km, cost {round_half_up(patch['refuel_cost'])}, "
            f"vehicle {vehicle.id} odometer now {end_odometer}"
        )
        return await self._get_trip(trip_id)

    async def update_notes(
        self,
        identity: RequesterIdentity,
        trip_id: int,
        notes: Optional[str],
    ) -> TripRequest:
        await self._get_trip(trip_id)
        if not await self.store.update_trip(trip_id, {"notes": notes}):
            raise NotFoundError("Trip", trip_id)
        logger.info(f"Trip {trip_id} notes updated by user {identity.user_id}")
        return await self._get_trip(trip_id)

    async def _push_odometer(self, trip: TripRequest, vehicle: Vehicle, end_odometer: int) -> None:
        try:
            written = await self.store.update_vehicle_odometer(vehicle.id, end_odometer)
        except StorageError as exc:
            self._report_partial(trip, vehicle, end_odometer)
            raise PartialCompletionError(
                trip.id, vehicle.id,
                trip_written=True, vehicle_written=False, end_odometer=end_odometer,
            ) from exc
        if not written:
            self._report_partial(trip, vehicle, end_odometer)
            raise PartialCompletionError(
                trip.id, vehicle.id,
                trip_written=True, vehicle_written=False, end_odometer=end_odometer,
            )

    def _report_partial(self, trip: TripRequest, vehicle: Vehicle, end_odometer: int) -> None:
        partial_completions.inc()
        logger.error(
            f"Trip {trip.id} is completed but vehicle {vehicle.id} odometer was not "
            f"updated to {end_odometer}; manual reconciliation required"
        )

    async def _transition(self, trip: TripRequest, expected: TripStatus, patch: Dict[str, Any]) -> None:
        target = patch["status"]
        if not await self.store.update_trip(trip.id, patch, expected_status=expected):
            # Lost the compare-and-set: someone else moved the trip first.
            current = await self.store.get_trip(trip.id)
            if current is None:
                raise NotFoundError("Trip", trip.id)
            self._reject(trip.id, current.status, target)
        trip_transitions.labels(from_status=str(expected), to_status=str(target)).inc()

    def _ensure_status(self, trip: TripRequest, required: TripStatus, target: TripStatus) -> None:
        if trip.status != required:
            self._reject(trip.id, trip.status, target)

    def _reject(self, trip_id: int, current: TripStatus, target: TripStatus) -> None:
        trip_transitions_rejected.labels(status=str(current), target=str(target)).inc()
        logger.warning(f"Rejected transition of trip {trip_id} from {current} to {target}")
        raise InvalidTransitionError(trip_id, TripStatus(current), TripStatus(target))

    async def _get_trip(self, trip_id: int) -> TripRequest:
        trip = await self.store.get_trip(trip_id)
        if trip is None:
            raise NotFoundError("Trip", trip_id)
        return trip

    async def _get_vehicle(self, vehicle_id: int) -> Vehicle:
        vehicle = await self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle", vehicle_id)
        return vehicle
