from fleet_usage.models.maintenance import Maintenance
from fleet_usage.models.parameter import Parameter
from fleet_usage.models.purpose import Purpose
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.schemas.maintenance import MaintenanceOut
from fleet_usage.schemas.parameter import ParameterOut
from fleet_usage.schemas.purpose import PurposeOut
from fleet_usage.schemas.report import ConsumptionReport, ConsumptionRow
from fleet_usage.schemas.trip import TripOut
from fleet_usage.schemas.user import UserOut
from fleet_usage.schemas.vehicle import VehicleOut
from fleet_usage.services.consumption import Aggregation, GroupTotals, round_half_up
from fleet_usage.services.store import price_table_from


def build_trip_response(trip: TripRequest) -> TripOut:
    return TripOut(
        id=trip.id,
        requester_id=trip.requester_id,
        vehicle_id=trip.vehicle_id,
        purpose_id=trip.purpose_id,
        approved_by=trip.approved_by,
        destination=trip.destination,
        status=trip.status,
        requested_at=trip.requested_at,
        approved_at=trip.approved_at,
        completed_at=trip.completed_at,
        start_odometer=trip.start_odometer,
        end_odometer=trip.end_odometer,
        distance_km=trip.distance_km,
        fuel_liters=trip.fuel_liters,
        fuel_type_refilled=trip.fuel_type_refilled,
        fuel_price_per_liter=trip.fuel_price_per_liter,
        refuel_cost=trip.refuel_cost,
        notes=trip.notes,
        created_at=trip.created_at,
        updated_at=trip.updated_at,
    )


def build_vehicle_response(vehicle: Vehicle) -> VehicleOut:
    return VehicleOut(
        id=vehicle.id,
        model=vehicle.model,
        plate=vehicle.plate,
        year=vehicle.year,
        fuel_type=vehicle.fuel_type,
        current_odometer=vehicle.current_odometer,
        is_active=vehicle.is_active,
        created_at=vehicle.created_at,
        updated_at=vehicle.updated_at,
    )


def build_user_response(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        name=user.name,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def build_purpose_response(purpose: Purpose) -> PurposeOut:
    return PurposeOut(
        id=purpose.id,
        name=purpose.name,
        created_at=purpose.created_at,
        updated_at=purpose.updated_at,
    )


def build_maintenance_response(record: Maintenance) -> MaintenanceOut:
    return MaintenanceOut(
        id=record.id,
        vehicle_id=record.vehicle_id,
        maintenance_date=record.maintenance_date,
        description=record.description,
        cost=record.cost,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def build_parameter_response(parameter: Parameter | None) -> ParameterOut:
    if parameter is None:
        return ParameterOut(fuel_prices=price_table_from(None))
    return ParameterOut(
        id=parameter.id,
        legal_name=parameter.legal_name,
        trade_name=parameter.trade_name,
        tax_id=parameter.tax_id,
        address=parameter.address,
        phone=parameter.phone,
        responsible=parameter.responsible,
        is_active=parameter.is_active,
        fuel_prices=price_table_from(parameter.fuel_prices),
        updated_at=parameter.updated_at,
    )


def build_consumption_row(group: GroupTotals) -> ConsumptionRow:
    return ConsumptionRow(
        key=group.key,
        label=group.label,
        trip_count=group.trip_count,
        total_km=group.total_km,
        total_liters=group.total_liters,
        total_cost=group.total_cost,
        avg_consumption=round_half_up(group.avg_consumption),
    )


def build_consumption_report(group_by: str, report: Aggregation) -> ConsumptionReport:
    return ConsumptionReport(
        group_by=group_by,
        rows=[build_consumption_row(row) for row in report.rows],
        totals=build_consumption_row(report.totals),
    )


def build_response_list(builder, items: list) -> list:
    return [builder(item) for item in items]
