"""FORGE MES — Users endpoints."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import PERM_USERS_MANAGE, CurrentUser, get_db, require_auth, require_permission
from mes.schemas.common import ApiResponse
from mes.schemas.product import UserCreate, UserResponse
from mes.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_me(
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Current user profile."""
    me = await UserService.get_user(db, user.id)
    return ApiResponse(data=UserResponse.model_validate(me))


@router.get("", response_model=ApiResponse[list[UserResponse]])
async def list_users(
    role: str | None = Query(None),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Anyone signed in can list users; orders and work orders are assigned to them."""
    users = await UserService.list_users(db, role)
    return ApiResponse(data=[UserResponse.model_validate(u) for u in users])


@router.post("", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    user: CurrentUser = Depends(require_permission(PERM_USERS_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    created = await UserService.create_user(db, body.name, body.email, body.role)
    return ApiResponse(data=UserResponse.model_validate(created))


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: int,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    found = await UserService.get_user(db, user_id)
    return ApiResponse(data=UserResponse.model_validate(found))
