"""FORGE MES — Product catalogue endpoints."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mes.api.deps import PERM_CATALOG_MANAGE, CurrentUser, get_db, require_auth, require_permission
from mes.schemas.common import ApiResponse, Meta
from mes.schemas.product import ProductCreate, ProductResponse, ProductUpdate
from mes.services.product_service import ProductService

router = APIRouter()


@router.get("", response_model=ApiResponse[list[ProductResponse]])
async def list_products(
    category: str | None = Query(None),
    is_component: bool | None = Query(None),
    search: str | None = Query(None, description="Search by name"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    products = await ProductService.list_products(db, category=category, is_component=is_component, search=search)
    start = (page - 1) * page_size
    return ApiResponse(
        data=[ProductResponse.model_validate(p) for p in products[start:start + page_size]],
        meta=Meta(page=page, page_size=page_size, total_count=len(products)),
    )


@router.post("", response_model=ApiResponse[ProductResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    body: ProductCreate,
    user: CurrentUser = Depends(require_permission(PERM_CATALOG_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductService.create_product(db, **body.model_dump())
    return ApiResponse(data=ProductResponse.model_validate(product))


@router.get("/{product_id}", response_model=ApiResponse[ProductResponse])
async def get_product(
    product_id: int,
    user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductService.get_product(db, product_id)
    return ApiResponse(data=ProductResponse.model_validate(product))


@router.patch("/{product_id}", response_model=ApiResponse[ProductResponse])
async def update_product(
    product_id: int,
    body: ProductUpdate,
    user: CurrentUser = Depends(require_permission(PERM_CATALOG_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    product = await ProductService.update_product(db, product_id, **body.model_dump(exclude_unset=True))
    return ApiResponse(data=ProductResponse.model_validate(product))


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    user: CurrentUser = Depends(require_permission(PERM_CATALOG_MANAGE)),
    db: AsyncSession = Depends(get_db),
):
    """Refused while BOMs, orders or ledger entries reference the product."""
    await ProductService.delete_product(db, product_id)
