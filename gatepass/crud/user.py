import uuid
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.models.user import User
from gatepass.schemas.user import UserRegister

from ..core.security import get_password_hash, verify_password


async def get(db: AsyncSession, id: uuid.UUID) -> Optional[User]:
    result = await db.execute(select(User).filter(User.id == id))
    first: Optional[User] = result.scalars().first()
    return first


async def lock(db: AsyncSession, id: uuid.UUID) -> Optional[User]:
    """Load a user row with an exclusive lock held until the transaction ends"""
    result = await db.execute(select(User).filter(User.id == id).with_for_update())
    first: Optional[User] = result.scalars().first()
    return first


async def get_by_contact(
    db: AsyncSession, *, email: Optional[str] = None, phone: Optional[str] = None
) -> Optional[User]:
    """Find a user by email or phone (either one matching is enough)"""
    filters = []
    if email:
        filters.append(User.email == email)
    if phone:
        filters.append(User.phone == phone)
    if not filters:
        return None
    result = await db.execute(select(User).filter(or_(*filters)).limit(1))
    first: Optional[User] = result.scalars().first()
    return first


async def create(db: AsyncSession, *, obj_in: UserRegister) -> User:
    db_obj = User(
        name=obj_in.name,
        email=obj_in.email,
        phone=obj_in.phone,
        hashed_password=get_password_hash(obj_in.password),
        role=obj_in.role,
    )
    db.add(db_obj)
    await db.commit()
    await db.refresh(db_obj)
    return db_obj


async def authenticate(
    db: AsyncSession, *, email: Optional[str], phone: Optional[str], password: str
) -> Optional[User]:
    user = await get_by_contact(db, email=email, phone=phone)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
