"""FORGE MES — API v1 router aggregation."""
from fastapi import APIRouter

from mes.api.v1.endpoints import (
    boms,
    ledger,
    manufacturing_orders,
    me,
    products,
    reports,
    users,
    work_centers,
    work_orders,
)

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(me.router, prefix="/me", tags=["me"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(work_centers.router, prefix="/work-centers", tags=["work-centers"])
api_router.include_router(boms.router, prefix="/boms", tags=["boms"])
api_router.include_router(ledger.router, prefix="/ledger", tags=["ledger"])
api_router.include_router(manufacturing_orders.router, prefix="/manufacturing-orders", tags=["manufacturing-orders"])
api_router.include_router(work_orders.router, prefix="/work-orders", tags=["work-orders"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
