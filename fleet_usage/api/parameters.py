import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from fleet_usage.db.session import get_db
from fleet_usage.models.parameter import Parameter
from fleet_usage.models.user import User
from fleet_usage.schemas.parameter import ParameterUpdate, ParameterOut
from fleet_usage.core.security import get_current_user, require_admin
from fleet_usage.core.audit_decorator import audit_log
from fleet_usage.core.enums import AuditAction
from fleet_usage.core.exceptions import ValidationError
from fleet_usage.core.response_builders import build_parameter_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/parameters", tags=["parameters"])


async def _current(db: AsyncSession):
    res = await db.execute(select(Parameter).order_by(Parameter.id))
    return res.scalars().first()


@router.get("/", response_model=ParameterOut)
async def get_parameters(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return build_parameter_response(await _current(db))


@router.put("/", response_model=ParameterOut)
@audit_log(AuditAction.UPDATE_PARAMETERS)
async def update_parameters(
    payload: ParameterUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create or update the singleton parameter row.

    New fuel prices only affect trips completed afterwards; completed trips
    keep the cost computed at their completion.
    """
    parameter = await _current(db)
    if parameter is None:
        parameter = Parameter(fuel_prices={})

    changes = payload.model_dump(exclude_unset=True)
    prices = changes.pop("fuel_prices", None)
    if prices is not None:
        if any(price < 0 for price in prices.values()):
            raise ValidationError("fuel prices cannot be negative")
        merged = dict(parameter.fuel_prices or {})
        merged.update({str(fuel): float(price) for fuel, price in prices.items()})
        # Reassign so the JSON column is flagged as modified.
        parameter.fuel_prices = merged
        logger.info(f"Fuel prices updated by user {current_user.id}: {merged}")

    for field, value in changes.items():
        setattr(parameter, field, value)

    db.add(parameter)
    await db.commit()
    await db.refresh(parameter)
    return build_parameter_response(parameter)
