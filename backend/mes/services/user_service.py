"""FORGE MES — UserService: the people orders are assigned to and created by."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mes.core.errors import NotFoundError, ReferentialError, ValidationError
from mes.models.user import User, UserRoleEnum

_ROLES = {r.value for r in UserRoleEnum}


class UserService:

    @staticmethod
    async def get_user(db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        return await db.scalar(select(User).where(func.lower(User.email) == email.lower()))

    @staticmethod
    async def list_users(db: AsyncSession, role: str | None = None) -> list[User]:
        q = select(User)
        if role:
            q = q.where(User.role == role.upper())
        result = await db.execute(q.order_by(User.name, User.id))
        return list(result.scalars().all())

    @staticmethod
    async def create_user(db: AsyncSession, name: str, email: str, role: str = UserRoleEnum.OPERATOR.value) -> User:
        role = (role or "").upper()
        if role not in _ROLES:
            raise ValidationError(f"Unknown role '{role}'", field="role")
        if not (name or "").strip():
            raise ValidationError("Name is required", field="name")
        if await UserService.get_by_email(db, email) is not None:
            raise ReferentialError(f"A user with email {email} already exists", details={"email": email})
        user = User(name=name.strip(), email=email.lower(), role=role)
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user
