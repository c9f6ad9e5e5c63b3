import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from fleet_usage.main import app
from fleet_usage.db.session import get_db
from fleet_usage.models.base import Base
from fleet_usage.models import audit, maintenance, parameter, purpose, trip, user, vehicle  # noqa: F401
from fleet_usage.models.parameter import Parameter
from fleet_usage.models.purpose import Purpose
from fleet_usage.models.user import User
from fleet_usage.models.vehicle import Vehicle
from fleet_usage.core.enums import FuelType, UserRole
from fleet_usage.core.identity import RequesterIdentity
from fleet_usage.core.security import create_access_token
from fleet_usage.services.store import SqlAlchemyStore
from fleet_usage.services.trips import TripLifecycleEngine


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(db):
    return SqlAlchemyStore(db)


@pytest.fixture
def trip_engine(store):
    return TripLifecycleEngine(store)


@pytest.fixture
async def test_client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _add(db, obj):
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@pytest.fixture
async def admin(db):
    return await _add(db, User(name="Beto", role=UserRole.ADMIN, is_active=True))


@pytest.fixture
async def operator(db):
    return await _add(db, User(name="Alice", role=UserRole.OPERATOR, is_active=True))


@pytest.fixture
async def inactive_operator(db):
    return await _add(db, User(name="Carlos", role=UserRole.OPERATOR, is_active=False))


@pytest.fixture
async def vehicle_a(db):
    return await _add(db, Vehicle(
        model="Toyota Corolla",
        plate="ABC-1234",
        year=2022,
        fuel_type=FuelType.GASOLINE,
        current_odometer=55000,
        is_active=True,
    ))


@pytest.fixture
async def vehicle_b(db):
    return await _add(db, Vehicle(
        model="Ford Ranger",
        plate="DEF-5678",
        year=2023,
        fuel_type=FuelType.DIESEL,
        current_odometer=25000,
        is_active=True,
    ))


@pytest.fixture
async def inactive_vehicle(db):
    return await _add(db, Vehicle(
        model="Honda Civic",
        plate="GHI-9012",
        year=2021,
        fuel_type=FuelType.FLEX,
        current_odometer=78000,
        is_active=False,
    ))


@pytest.fixture
async def purpose_x(db):
    return await _add(db, Purpose(name="Client visit"))


@pytest.fixture
async def purpose_y(db):
    return await _add(db, Purpose(name="Material pickup"))


@pytest.fixture
async def fuel_prices(db):
    return await _add(db, Parameter(
        trade_name="Frota Teste",
        fuel_prices={"Gasolina": 5.89, "Diesel": 6.10, "Etanol": 3.99},
    ))


@pytest.fixture
def admin_identity(admin):
    return RequesterIdentity(user_id=admin.id, role=UserRole.ADMIN)


@pytest.fixture
def operator_identity(operator):
    return RequesterIdentity(user_id=operator.id, role=UserRole.OPERATOR)


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin.id, admin.role)}"}


@pytest.fixture
def operator_headers(operator):
    return {"Authorization": f"Bearer {create_access_token(operator.id, operator.role)}"}


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "engine: marks tests of the trip lifecycle engine"
    )
    config.addinivalue_line(
        "markers", "api: marks tests that go through the HTTP layer"
    )
    config.addinivalue_line(
        "markers", "reports: marks tests related to consumption reports"
    )
