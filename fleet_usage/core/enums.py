from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"

    def __str__(self):
        return self.value


class FuelType(str, Enum):
    GASOLINE = "Gasolina"
    FLEX = "Flex"
    DIESEL = "Diesel"
    ETHANOL = "Etanol"
    ELECTRIC = "Elétrico"

    def __str__(self):
        return self.value


class TripStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    # Reserved: no transition produces or consumes it yet.
    IN_USE = "in_use"
    COMPLETED = "completed"
    DENIED = "denied"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    CREATE_TRIP = "create_trip"
    APPROVE_TRIP = "approve_trip"
    DENY_TRIP = "deny_trip"
    COMPLETE_TRIP = "complete_trip"
    UPDATE_TRIP_NOTES = "update_trip_notes"
    CREATE_VEHICLE = "create_vehicle"
    UPDATE_VEHICLE = "update_vehicle"
    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"
    CREATE_PURPOSE = "create_purpose"
    UPDATE_PURPOSE = "update_purpose"
    DELETE_PURPOSE = "delete_purpose"
    CREATE_MAINTENANCE = "create_maintenance"
    UPDATE_MAINTENANCE = "update_maintenance"
    DELETE_MAINTENANCE = "delete_maintenance"
    UPDATE_PARAMETERS = "update_parameters"

    def __str__(self):
        return self.value


IN_FLIGHT_STATUSES = (TripStatus.APPROVED, TripStatus.IN_USE)
