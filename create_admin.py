"""Seed an administrator and print a bearer token for it.

Tokens are normally issued by the identity provider in front of the service;
this is the bootstrap path for a fresh database.
"""
import asyncio
import sys
from typing import Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from fleet_usage.core.enums import UserRole
from fleet_usage.core.security import create_access_token
from fleet_usage.db.session import AsyncSessionLocal, init_db
from fleet_usage.models.user import User


async def create_admin_user(db: AsyncSession, name: str) -> Tuple[Optional[User], str]:
    res = await db.execute(select(User).where(User.name == name, User.role == UserRole.ADMIN))
    existing_user = res.scalars().first()
    if existing_user:
        return None, f"Error: Administrator '{name}' already exists (id {existing_user.id})"

    user = User(name=name, role=UserRole.ADMIN, is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user, f"Administrator '{name}' created with id {user.id}"


async def _run(name: str) -> bool:
    await init_db()
    async with AsyncSessionLocal() as db:
        user, message = await create_admin_user(db, name)
    print(message)
    if user is None:
        return False
    print(f"Token: {create_access_token(user.id, user.role)}")
    return True


def main():
    if len(sys.argv) < 2 or not sys.argv[1].strip():
        print("Usage: python create_admin.py <name>")
        sys.exit(1)

    success = asyncio.run(_run(sys.argv[1].strip()))
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
