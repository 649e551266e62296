"""FORGE MES — SQLAlchemy models."""
from mes.models.bom import BOM, BOMComponent, BOMOperation
from mes.models.manufacturing_order import (
    MO_TERMINAL_STATUSES,
    ComponentStatus,
    ManufacturingOrder,
    MOStatus,
)
from mes.models.product import Product, ProductCategory, WorkCenter
from mes.models.stock_ledger import MovementType, StockLedger
from mes.models.user import User, UserRoleEnum
from mes.models.work_order import WO_TERMINAL_STATUSES, WOStatus, WorkOrder

__all__ = [
    "User", "UserRoleEnum",
    "Product", "ProductCategory", "WorkCenter",
    "BOM", "BOMComponent", "BOMOperation",
    "ManufacturingOrder", "MOStatus", "ComponentStatus", "MO_TERMINAL_STATUSES",
    "WorkOrder", "WOStatus", "WO_TERMINAL_STATUSES",
    "StockLedger", "MovementType",
]
