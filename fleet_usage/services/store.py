"""Entity store used by the trip lifecycle engine.

``EntityStore`` is the contract the engine relies on. ``SqlAlchemyStore`` is
the implementation over an ``AsyncSession``: every call is bounded by
``settings.STORE_TIMEOUT_SECONDS`` and every driver failure or timeout comes
out as ``StorageError``.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncIterator, Callable, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from fleet_usage.core.config import settings
from fleet_usage.core.enums import FuelType, TripStatus
from fleet_usage.core.exceptions import StorageError
from fleet_usage.core.metrics import store_operations, store_operation_duration
from fleet_usage.models.parameter import Parameter
from fleet_usage.models.purpose import Purpose
from fleet_usage.models.trip import TripRequest
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle

logger = logging.getLogger(__name__)


def price_table_from(raw: Optional[Dict[str, Any]]) -> Dict[FuelType, float]:
    """Total price table over FuelType; unknown or missing prices are 0."""
    raw = raw or {}
    return {fuel: float(raw.get(fuel.value) or 0.0) for fuel in FuelType}


class EntityStore(ABC):
    # True when transaction() makes several writes all-or-nothing.
    transactional: bool = False

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def get_purpose(self, purpose_id: int) -> Optional[Purpose]: ...

    @abstractmethod
    async def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]: ...

    @abstractmethod
    async def update_vehicle_odometer(self, vehicle_id: int, new_value: int) -> bool:
        """Set the odometer. False when the vehicle does not exist."""

    @abstractmethod
    async def get_trip(self, trip_id: int) -> Optional[TripRequest]: ...

    @abstractmethod
    async def create_trip(self, data: Dict[str, Any]) -> TripRequest: ...

    @abstractmethod
    async def update_trip(
        self,
        trip_id: int,
        patch: Dict[str, Any],
        expected_status: Optional[TripStatus] = None,
    ) -> bool:
        """Apply ``patch`` only if the trip still has ``expected_status``.

        Returns False when no row matched, i.e. the trip is gone or another
        writer moved it first.
        """

    @abstractmethod
    async def get_fuel_prices(self) -> Dict[FuelType, float]: ...

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["EntityStore"]:
        yield self


def _guarded(operation: str) -> Callable:
    """Bound a store call in time and translate its failures to StorageError."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(self: "SqlAlchemyStore", *args, **kwargs):
            start_time = time.time()
            try:
                result = await asyncio.wait_for(func(self, *args, **kwargs), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                store_operations.labels(operation=operation, status="timeout").inc()
                logger.error(f"Store operation {operation} timed out after {self.timeout}s")
                await self._discard()
                raise StorageError(
                    f"Store operation '{operation}' timed out after {self.timeout}s",
                    operation=operation,
                ) from exc
            except SQLAlchemyError as exc:
                store_operations.labels(operation=operation, status="error").inc()
                logger.error(f"Store operation {operation} failed: {exc}")
                await self._discard()
                raise StorageError(
                    f"Store operation '{operation}' failed: {exc}",
                    operation=operation,
                ) from exc
            finally:
                store_operation_duration.labels(operation=operation).observe(time.time() - start_time)
            store_operations.labels(operation=operation, status="success").inc()
            return result
        return wrapper
    return decorator


class SqlAlchemyStore(EntityStore):
    transactional = True

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT_SECONDS
        self._in_transaction = False

    async def _discard(self) -> None:
        # Inside transaction() the context manager owns the rollback.
        if self._in_transaction:
            return
        try:
            await self.db.rollback()
        except SQLAlchemyError as exc:
            logger.error(f"Rollback after store failure also failed: {exc}")

    async def _finish_write(self) -> None:
        if self._in_transaction:
            await self.db.flush()
        else:
            await self.db.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlAlchemyStore"]:
        if self._in_transaction:
            raise RuntimeError("SqlAlchemyStore.transaction() does not nest")
        self._in_transaction = True
        try:
            yield self
            await self._commit()
        except BaseException:
            await self.db.rollback()
            raise
        finally:
            self._in_transaction = False

    @_guarded("commit")
    async def _commit(self) -> None:
        await self.db.commit()

    @_guarded("get_user")
    async def get_user(self, user_id: int) -> Optional[User]:
        res = await self.db.execute(select(User).where(User.id == user_id))
        return res.scalars().first()

    @_guarded("get_purpose")
    async def get_purpose(self, purpose_id: int) -> Optional[Purpose]:
        res = await self.db.execute(select(Purpose).where(Purpose.id == purpose_id))
        return res.scalars().first()

    @_guarded("get_vehicle")
    async def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        res = await self.db.execute(
            select(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .execution_options(populate_existing=True)
        )
        return res.scalars().first()

    @_guarded("update_vehicle_odometer")
    async def update_vehicle_odometer(self, vehicle_id: int, new_value: int) -> bool:
        res = await self.db.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(current_odometer=new_value)
            .execution_options(synchronize_session=False)
        )
        await self._finish_write()
        return res.rowcount == 1

    @_guarded("get_trip")
    async def get_trip(self, trip_id: int) -> Optional[TripRequest]:
        res = await self.db.execute(
            select(TripRequest)
            .where(TripRequest.id == trip_id)
            .execution_options(populate_existing=True)
        )
        return res.scalars().first()

    @_guarded("create_trip")
    async def create_trip(self, data: Dict[str, Any]) -> TripRequest:
        trip = TripRequest(**data)
        self.db.add(trip)
        await self.db.flush()
        await self._finish_write()
        await self.db.refresh(trip)
        return trip

    @_guarded("update_trip")
    async def update_trip(
        self,
        trip_id: int,
        patch: Dict[str, Any],
        expected_status: Optional[TripStatus] = None,
    ) -> bool:
        stmt = (
            update(TripRequest)
            .where(TripRequest.id == trip_id)
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        if expected_status is not None:
            stmt = stmt.where(TripRequest.status == expected_status)
        res = await self.db.execute(stmt)
        await self._finish_write()
        return res.rowcount == 1

    @_guarded("get_fuel_prices")
    async def get_fuel_prices(self) -> Dict[FuelType, float]:
        res = await self.db.execute(select(Parameter).order_by(Parameter.id))
        parameter = res.scalars().first()
        return price_table_from(parameter.fuel_prices if parameter else None)
