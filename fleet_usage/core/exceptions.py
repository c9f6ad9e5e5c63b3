"""Error taxonomy shared by the trip engine, the store and the API layer."""

from typing import Optional

from fleet_usage.core.enums import TripStatus


class FleetError(Exception):
    """Base exception for all fleet usage errors."""


class ValidationError(FleetError):
    """Bad input. Nothing was written."""


class NotFoundError(FleetError):
    def __init__(self, resource: str, resource_id=None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id {resource_id} not found"
        super().__init__(message)


class InvalidTransitionError(FleetError):
    """Operation attempted from a status that does not allow it."""

    def __init__(
        self,
        trip_id: int,
        current: TripStatus,
        target: TripStatus,
    ) -> None:
        self.trip_id = trip_id
        self.current = current
        self.target = target
        super().__init__(
            f"Trip {trip_id} cannot move from '{current}' to '{target}'"
        )


class StorageError(FleetError):
    """The entity store failed or did not answer in time.

    Raised ``from`` the underlying driver error. The engine never retries;
    retrying is the caller's decision.
    """

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)


class PartialCompletionError(FleetError):
    """Only one half of a trip completion reached the store.

    ``trip_written`` and ``vehicle_written`` tell an operator which write has
    to be reconciled by hand.
    """

    def __init__(
        self,
        trip_id: int,
        vehicle_id: int,
        *,
        trip_written: bool,
        vehicle_written: bool,
        end_odometer: Optional[int] = None,
    ) -> None:
        self.trip_id = trip_id
        self.vehicle_id = vehicle_id
        self.trip_written = trip_written
        self.vehicle_written = vehicle_written
        self.end_odometer = end_odometer
        super().__init__(
            f"Completion of trip {trip_id} left vehicle {vehicle_id} inconsistent "
            f"(trip_written={trip_written}, vehicle_written={vehicle_written})"
        )
