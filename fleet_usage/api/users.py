from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Optional, List

from fleet_usage.db.session import get_db
from fleet_usage.models.user import User
from fleet_usage.schemas.user import UserCreate, UserUpdate, UserOut
from fleet_usage.core.security import get_current_user, require_admin
from fleet_usage.core.audit_decorator import audit_log
from fleet_usage.core.checks import check_not_found
from fleet_usage.core.enums import AuditAction
from fleet_usage.core.response_builders import build_user_response, build_response_list

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserOut)
@audit_log(AuditAction.CREATE_USER)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    user = User(name=payload.name.strip(), role=payload.role, is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return build_user_response(user)


@router.get("/", response_model=List[UserOut])
async def list_users(
    active: Optional[bool] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    q = select(User)
    if active is not None:
        q = q.where(User.is_active == active)
    res = await db.execute(q.order_by(User.name))
    return build_response_list(build_user_response, res.scalars().all())


@router.get("/me", response_model=UserOut)
async def who_am_i(current_user: User = Depends(get_current_user)):
    return build_user_response(current_user)


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalars().first()
    check_not_found(user, "User", user_id)
    return build_user_response(user)


@router.put("/{user_id}", response_model=UserOut)
@audit_log(AuditAction.UPDATE_USER)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Users are deactivated, never deleted: trips keep pointing at them."""
    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalars().first()
    check_not_found(user, "User", user_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(user, field, value)

    db.add(user)
    await db.commit()
    await db.refresh(user)
    return build_user_response(user)
