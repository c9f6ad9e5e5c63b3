import asyncio
import logging
import pytest
from datetime import datetime, timezone
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fleet_usage.core.enums import FuelType, TripStatus, UserRole
from fleet_usage.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PartialCompletionError,
    StorageError,
    ValidationError,
)
from fleet_usage.core.identity import RequesterIdentity
from fleet_usage.models.base import Base
from fleet_usage.models.purpose import Purpose
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.services.store import SqlAlchemyStore, _guarded
from fleet_usage.services.trips import TripLifecycleEngine

pytestmark = pytest.mark.engine


class NonTransactionalStore(SqlAlchemyStore):
    """Writes commit one by one and the vehicle write always fails."""

    transactional = False

    async def update_vehicle_odometer(self, vehicle_id, new_value):
        raise StorageError("vehicle table unavailable", operation="update_vehicle_odometer")


class FailingOdometerStore(SqlAlchemyStore):

    async def update_vehicle_odometer(self, vehicle_id, new_value):
        raise StorageError("vehicle table unavailable", operation="update_vehicle_odometer")


class RacingStore(SqlAlchemyStore):
    """Lets a competing writer deny the trip right before our compare-and-set."""

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.raced = False

    async def update_trip(self, trip_id, patch, expected_status=None):
        if not self.raced and expected_status is not None:
            self.raced = True
            await super().update_trip(trip_id, {"status": TripStatus.DENIED}, expected_status=expected_status)
        return await super().update_trip(trip_id, patch, expected_status=expected_status)


class SlowStore(SqlAlchemyStore):

    @_guarded("get_trip")
    async def get_trip(self, trip_id):
        await asyncio.sleep(1)


class BrokenStore(SqlAlchemyStore):

    @_guarded("get_vehicle")
    async def get_vehicle(self, vehicle_id):
        raise OperationalError("SELECT * FROM vehicles", {}, Exception("database is locked"))


class CountingStore(SqlAlchemyStore):

    def __init__(self, db, **kwargs):
        super().__init__(db, **kwargs)
        self.price_lookups = 0

    async def get_fuel_prices(self):
        self.price_lookups += 1
        return await super().get_fuel_prices()


async def approved_trip(engine, requester, admin, vehicle, purpose, destination="Cliente ABC"):
    trip = await engine.create_request(requester, vehicle.id, purpose.id, destination)
    return await engine.approve(admin, trip.id)


class TestCreateRequest:

    @pytest.mark.asyncio
    async def test_create_request_is_pending(self, trip_engine, operator_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")

        assert trip.id is not None
        assert trip.status == TripStatus.PENDING
        assert trip.requester_id == operator_identity.user_id
        assert trip.requested_at is not None
        assert trip.approved_at is None
        assert trip.start_odometer is None
        assert trip.end_odometer is None

    @pytest.mark.asyncio
    async def test_requested_at_comes_from_clock(self, store, operator_identity, vehicle_a, purpose_x):
        fixed = datetime(2024, 3, 1, 8, 30, tzinfo=timezone.utc)
        engine = TripLifecycleEngine(store, clock=lambda: fixed)

        trip = await engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Porto")

        assert trip.requested_at.replace(tzinfo=None) == fixed.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_destination_is_trimmed(self, trip_engine, operator_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "  Cliente ABC  ")
        assert trip.destination == "Cliente ABC"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("destination", ["", "   ", None])
    async def test_blank_destination_is_rejected(self, trip_engine, operator_identity, vehicle_a, purpose_x, destination):
        with pytest.raises(ValidationError, match="destination"):
            await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, destination)

    @pytest.mark.asyncio
    async def test_inactive_requester_is_rejected(self, trip_engine, inactive_operator, vehicle_a, purpose_x):
        identity = RequesterIdentity(user_id=inactive_operator.id)
        with pytest.raises(ValidationError, match="inactive"):
            await trip_engine.create_request(identity, vehicle_a.id, purpose_x.id, "Cliente ABC")

    @pytest.mark.asyncio
    async def test_inactive_vehicle_is_rejected(self, trip_engine, operator_identity, inactive_vehicle, purpose_x):
        with pytest.raises(ValidationError, match="inactive"):
            await trip_engine.create_request(operator_identity, inactive_vehicle.id, purpose_x.id, "Cliente ABC")

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, trip_engine, operator_identity, purpose_x):
        with pytest.raises(NotFoundError, match="Vehicle"):
            await trip_engine.create_request(operator_identity, 9999, purpose_x.id, "Cliente ABC")

    @pytest.mark.asyncio
    async def test_unknown_purpose(self, trip_engine, operator_identity, vehicle_a):
        with pytest.raises(NotFoundError, match="Purpose"):
            await trip_engine.create_request(operator_identity, vehicle_a.id, 9999, "Cliente ABC")

    @pytest.mark.asyncio
    async def test_unknown_requester(self, trip_engine, vehicle_a, purpose_x):
        with pytest.raises(NotFoundError, match="User"):
            await trip_engine.create_request(RequesterIdentity(user_id=9999), vehicle_a.id, purpose_x.id, "Porto")


class TestApproveAndDeny:

    @pytest.mark.asyncio
    async def test_approve_snapshots_odometer(self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")

        approved = await trip_engine.approve(admin_identity, trip.id)

        assert approved.status == TripStatus.APPROVED
        assert approved.start_odometer == 55000
        assert approved.approved_at is not None
        assert approved.approved_by == admin_identity.user_id

    @pytest.mark.asyncio
    async def test_approve_twice_is_rejected_without_mutation(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, db
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)
        first_approval = trip.approved_at

        vehicle_a.current_odometer = 55500
        await db.commit()

        with pytest.raises(InvalidTransitionError) as exc_info:
            await trip_engine.approve(admin_identity, trip.id)

        assert exc_info.value.current == TripStatus.APPROVED
        assert exc_info.value.target == TripStatus.APPROVED
        again = await trip_engine.store.get_trip(trip.id)
        assert again.start_odometer == 55000
        assert again.approved_at == first_approval

    @pytest.mark.asyncio
    async def test_deny_changes_only_status(self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")

        denied = await trip_engine.deny(admin_identity, trip.id)

        assert denied.status == TripStatus.DENIED
        assert denied.approved_at is None
        assert denied.approved_by is None
        assert denied.start_odometer is None

    @pytest.mark.asyncio
    async def test_denied_trip_is_terminal(self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")
        await trip_engine.deny(admin_identity, trip.id)

        with pytest.raises(InvalidTransitionError):
            await trip_engine.approve(admin_identity, trip.id)
        with pytest.raises(InvalidTransitionError):
            await trip_engine.complete(operator_identity, trip.id, end_odometer=55100)
        with pytest.raises(InvalidTransitionError):
            await trip_engine.deny(admin_identity, trip.id)

    @pytest.mark.asyncio
    async def test_deny_approved_trip_is_rejected(self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        with pytest.raises(InvalidTransitionError):
            await trip_engine.deny(admin_identity, trip.id)

    @pytest.mark.asyncio
    async def test_unknown_trip(self, trip_engine, admin_identity):
        with pytest.raises(NotFoundError, match="Trip"):
            await trip_engine.approve(admin_identity, 9999)
        with pytest.raises(NotFoundError, match="Trip"):
            await trip_engine.deny(admin_identity, 9999)

    @pytest.mark.asyncio
    async def test_lost_race_reports_current_status(self, db, operator_identity, admin_identity, vehicle_a, purpose_x):
        store = RacingStore(db)
        engine = TripLifecycleEngine(store)
        trip = await engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await engine.approve(admin_identity, trip.id)

        assert exc_info.value.current == TripStatus.DENIED
        stored = await store.get_trip(trip.id)
        assert stored.status == TripStatus.DENIED
        assert stored.start_odometer is None

    @pytest.mark.asyncio
    async def test_compare_and_set_matches_once(self, store, trip_engine, operator_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")
        patch = {"status": TripStatus.APPROVED, "start_odometer": 55000}

        assert await store.update_trip(trip.id, patch, expected_status=TripStatus.PENDING) is True
        assert await store.update_trip(trip.id, patch, expected_status=TripStatus.PENDING) is False


class TestComplete:

    @pytest.mark.asyncio
    async def test_complete_with_refuel(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, fuel_prices
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        done = await trip_engine.complete(
            operator_identity, trip.id,
            end_odometer=55150, fuel_liters=12.5, fuel_type_refilled=FuelType.GASOLINE,
        )

        assert done.status == TripStatus.COMPLETED
        assert done.completed_at is not None
        assert done.end_odometer == 55150
        assert done.distance_km == 150
        assert done.fuel_price_per_liter == 5.89
        assert done.refuel_cost == pytest.approx(73.625)
        vehicle = await trip_engine.store.get_vehicle(vehicle_a.id)
        assert vehicle.current_odometer == 55150

    @pytest.mark.asyncio
    async def test_complete_without_refuel_skips_price_lookup(
        self, db, operator_identity, admin_identity, vehicle_a, purpose_x, fuel_prices
    ):
        store = CountingStore(db)
        engine = TripLifecycleEngine(store)
        trip = await approved_trip(engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        done = await engine.complete(operator_identity, trip.id, end_odometer=55040, fuel_liters=0)

        assert done.refuel_cost == 0.0
        assert done.fuel_price_per_liter is None
        assert store.price_lookups == 0

    @pytest.mark.asyncio
    async def test_fuel_without_configured_price_costs_nothing(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, fuel_prices
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        done = await trip_engine.complete(
            operator_identity, trip.id,
            end_odometer=55100, fuel_liters=30.0, fuel_type_refilled=FuelType.ELECTRIC,
        )

        assert done.refuel_cost == 0.0
        assert done.fuel_price_per_liter == 0.0

    @pytest.mark.asyncio
    async def test_equal_odometer_is_valid(self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        done = await trip_engine.complete(operator_identity, trip.id, end_odometer=55000)

        assert done.status == TripStatus.COMPLETED
        assert done.distance_km == 0

    @pytest.mark.asyncio
    async def test_odometer_below_start_is_rejected(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        with pytest.raises(ValidationError, match="invalid final odometer"):
            await trip_engine.complete(operator_identity, trip.id, end_odometer=54900)

        stored = await trip_engine.store.get_trip(trip.id)
        assert stored.status == TripStatus.APPROVED
        assert stored.end_odometer is None
        vehicle = await trip_engine.store.get_vehicle(vehicle_a.id)
        assert vehicle.current_odometer == 55000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("end_odometer", [None, -1])
    async def test_missing_or_negative_odometer(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, end_odometer
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        with pytest.raises(ValidationError):
            await trip_engine.complete(operator_identity, trip.id, end_odometer=end_odometer)

    @pytest.mark.asyncio
    async def test_negative_fuel_is_rejected(self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        with pytest.raises(ValidationError, match="fuel"):
            await trip_engine.complete(
                operator_identity, trip.id,
                end_odometer=55100, fuel_liters=-5.0, fuel_type_refilled=FuelType.GASOLINE,
            )

    @pytest.mark.asyncio
    async def test_pending_trip_cannot_complete(self, trip_engine, operator_identity, vehicle_a, purpose_x):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await trip_engine.complete(operator_identity, trip.id, end_odometer=55100)

        assert exc_info.value.current == TripStatus.PENDING
        assert exc_info.value.target == TripStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_completed_trip_cannot_complete_again(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)
        await trip_engine.complete(operator_identity, trip.id, end_odometer=55100)

        with pytest.raises(InvalidTransitionError):
            await trip_engine.complete(operator_identity, trip.id, end_odometer=55200)

        vehicle = await trip_engine.store.get_vehicle(vehicle_a.id)
        assert vehicle.current_odometer == 55100

    @pytest.mark.asyncio
    async def test_in_use_trip_is_not_reachable_by_any_operation(
        self, store, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")
        await store.update_trip(trip.id, {"status": TripStatus.IN_USE, "start_odometer": 55000})

        with pytest.raises(InvalidTransitionError):
            await trip_engine.approve(admin_identity, trip.id)
        with pytest.raises(InvalidTransitionError):
            await trip_engine.deny(admin_identity, trip.id)
        with pytest.raises(InvalidTransitionError):
            await trip_engine.complete(operator_identity, trip.id, end_odometer=55100)

    @pytest.mark.asyncio
    async def test_sequential_completions_on_one_vehicle(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        first = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, "Porto")
        second = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, "Braga")
        assert first.start_odometer == second.start_odometer == 55000

        await trip_engine.complete(operator_identity, first.id, end_odometer=55100)
        done = await trip_engine.complete(operator_identity, second.id, end_odometer=55150)

        assert done.distance_km == 150
        vehicle = await trip_engine.store.get_vehicle(vehicle_a.id)
        assert vehicle.current_odometer == 55150

    @pytest.mark.asyncio
    async def test_completion_log_rounds_cost_half_up(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, fuel_prices, caplog
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        with caplog.at_level(logging.INFO, logger="fleet_usage.services.trips"):
            await trip_engine.complete(
                operator_identity, trip.id,
                end_odometer=55150, fuel_liters=12.5, fuel_type_refilled=FuelType.GASOLINE,
            )

        assert "150 km, cost 73.63," in caplog.text

    @pytest.mark.asyncio
    async def test_last_completion_wins_and_warns_on_regression(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, caplog
    ):
        first = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, "Porto")
        second = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, "Braga")
        await trip_engine.complete(operator_identity, first.id, end_odometer=55100)

        with caplog.at_level(logging.WARNING):
            await trip_engine.complete(operator_identity, second.id, end_odometer=55080)

        vehicle = await trip_engine.store.get_vehicle(vehicle_a.id)
        assert vehicle.current_odometer == 55080
        assert "odometer back" in caplog.text

    @pytest.mark.asyncio
    async def test_price_change_does_not_touch_completed_trips(
        self, db, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x, fuel_prices
    ):
        first = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)
        await trip_engine.complete(
            operator_identity, first.id,
            end_odometer=55150, fuel_liters=10.0, fuel_type_refilled=FuelType.GASOLINE,
        )

        fuel_prices.fuel_prices = {**fuel_prices.fuel_prices, "Gasolina": 7.0}
        await db.commit()

        second = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)
        done = await trip_engine.complete(
            operator_identity, second.id,
            end_odometer=55250, fuel_liters=10.0, fuel_type_refilled=FuelType.GASOLINE,
        )

        stored_first = await trip_engine.store.get_trip(first.id)
        assert stored_first.refuel_cost == pytest.approx(58.9)
        assert stored_first.fuel_price_per_liter == 5.89
        assert done.refuel_cost == pytest.approx(70.0)
        assert done.start_odometer == 55150

    @pytest.mark.asyncio
    async def test_failed_vehicle_write_rolls_back_trip(self, db, operator_identity, admin_identity, vehicle_a, purpose_x):
        store = FailingOdometerStore(db)
        engine = TripLifecycleEngine(store)
        trip = await approved_trip(engine, operator_identity, admin_identity, vehicle_a, purpose_x)
        trip_id, vehicle_id = trip.id, vehicle_a.id

        with pytest.raises(StorageError):
            await engine.complete(operator_identity, trip_id, end_odometer=55150)

        # The rollback expired every loaded object; only plain ids are used from here on.
        stored = await store.get_trip(trip_id)
        assert stored.status == TripStatus.APPROVED
        assert stored.end_odometer is None
        vehicle = await store.get_vehicle(vehicle_id)
        assert vehicle.current_odometer == 55000

    @pytest.mark.asyncio
    async def test_partial_completion_on_non_transactional_store(
        self, db, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        store = NonTransactionalStore(db)
        engine = TripLifecycleEngine(store)
        trip = await approved_trip(engine, operator_identity, admin_identity, vehicle_a, purpose_x)

        with pytest.raises(PartialCompletionError) as exc_info:
            await engine.complete(operator_identity, trip.id, end_odometer=55150)

        err = exc_info.value
        assert err.trip_id == trip.id
        assert err.vehicle_id == vehicle_a.id
        assert err.trip_written is True
        assert err.vehicle_written is False
        assert err.end_odometer == 55150
        assert isinstance(err.__cause__, StorageError)

        stored = await store.get_trip(trip.id)
        assert stored.status == TripStatus.COMPLETED
        vehicle = await store.get_vehicle(vehicle_a.id)
        assert vehicle.current_odometer == 55000


class TestConcurrentApprovals:

    @pytest.mark.asyncio
    async def test_one_of_several_concurrent_approvals_wins(self, tmp_path):
        db_engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'fleet.db'}",
            connect_args={"timeout": 30},
        )
        async with db_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        sessions = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

        async with sessions() as session:
            admin = User(name="Beto", role=UserRole.ADMIN)
            operator = User(name="Alice", role=UserRole.OPERATOR)
            vehicle = Vehicle(model="Toyota Corolla", plate="ABC-1234", year=2022,
                              fuel_type=FuelType.GASOLINE, current_odometer=55000)
            purpose = Purpose(name="Client visit")
            session.add_all([admin, operator, vehicle, purpose])
            await session.commit()
            trip = await TripLifecycleEngine(SqlAlchemyStore(session)).create_request(
                RequesterIdentity(user_id=operator.id), vehicle.id, purpose.id, "Cliente ABC"
            )
            trip_id = trip.id
            approver = RequesterIdentity(user_id=admin.id, role=UserRole.ADMIN)

        async def approve_in_own_session():
            async with sessions() as session:
                engine = TripLifecycleEngine(SqlAlchemyStore(session))
                try:
                    approved = await engine.approve(approver, trip_id)
                except InvalidTransitionError as exc:
                    return exc
                return approved.status

        try:
            results = await asyncio.gather(*(approve_in_own_session() for _ in range(5)))

            assert results.count(TripStatus.APPROVED) == 1
            losers = [r for r in results if r != TripStatus.APPROVED]
            assert len(losers) == 4
            assert all(isinstance(r, InvalidTransitionError) for r in losers)
            assert all(r.current == TripStatus.APPROVED for r in losers)

            async with sessions() as session:
                stored = await SqlAlchemyStore(session).get_trip(trip_id)
                assert stored.status == TripStatus.APPROVED
                assert stored.start_odometer == 55000
        finally:
            await db_engine.dispose()


class TestNotes:

    @pytest.mark.asyncio
    async def test_notes_can_change_after_completion(
        self, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        trip = await approved_trip(trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x)
        await trip_engine.complete(operator_identity, trip.id, end_odometer=55100, notes="ok")

        updated = await trip_engine.update_notes(operator_identity, trip.id, "pneu furado")

        assert updated.notes == "pneu furado"
        assert updated.status == TripStatus.COMPLETED
        assert updated.distance_km == 100

    @pytest.mark.asyncio
    async def test_notes_on_unknown_trip(self, trip_engine, operator_identity):
        with pytest.raises(NotFoundError):
            await trip_engine.update_notes(operator_identity, 9999, "x")


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_timeout_becomes_storage_error(self, db, admin_identity):
        engine = TripLifecycleEngine(SlowStore(db, timeout=0.05))

        with pytest.raises(StorageError) as exc_info:
            await engine.approve(admin_identity, 1)

        assert exc_info.value.operation == "get_trip"
        assert isinstance(exc_info.value.__cause__, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_driver_error_becomes_storage_error(
        self, db, trip_engine, operator_identity, admin_identity, vehicle_a, purpose_x
    ):
        trip = await trip_engine.create_request(operator_identity, vehicle_a.id, purpose_x.id, "Cliente ABC")
        trip_id = trip.id
        engine = TripLifecycleEngine(BrokenStore(db))

        with pytest.raises(StorageError) as exc_info:
            await engine.approve(admin_identity, trip_id)

        assert exc_info.value.operation == "get_vehicle"
        assert isinstance(exc_info.value.__cause__, OperationalError)
        stored = await trip_engine.store.get_trip(trip_id)
        assert stored.status == TripStatus.PENDING
