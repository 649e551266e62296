"""FORGE MES — BOM Resolver.

Pure scaling of a BOM to a target output quantity. Preview, availability,
reservation and costing all go through `scale_for_quantity`, so a quoted
preview and the quantities actually booked out can never differ.
"""
from dataclasses import dataclass, field
from decimal import Decimal

from mes.core.errors import ValidationError
from mes.db.base import to_qty


@dataclass(frozen=True)
class ScaledComponent:
    product_id: int
    per_output_qty: Decimal
    required_qty: Decimal
    product_name: str | None = None
    uom: str | None = None
    unit_cost: Decimal = Decimal("0")


@dataclass(frozen=True)
class ScaledOperation:
    name: str
    sequence: int
    work_center_id: int | None
    duration_mins: Decimal
    operation_id: int | None = None
    work_center_name: str | None = None


@dataclass(frozen=True)
class BomScaling:
    bom_id: int | None
    product_id: int
    quantity: Decimal
    output_quantity: Decimal
    components: list[ScaledComponent] = field(default_factory=list)
    operations: list[ScaledOperation] = field(default_factory=list)
    product_name: str | None = None


def _effective_output(output_quantity) -> Decimal:
    output = Decimal(str(output_quantity)) if output_quantity is not None else Decimal("0")
    return output if output > 0 else Decimal("1")


def scale_quantity(per_output_qty, target_quantity, output_quantity) -> Decimal:
    """required = per_output * target / output, rounded half-up to 4 places."""
    per_output = Decimal(str(per_output_qty))
    target = Decimal(str(target_quantity))
    return to_qty(per_output * target / _effective_output(output_quantity))


def ordered_operations(operations) -> list:
    """Ascending sequence; ties by id, then by insertion order for unsaved rows."""
    indexed = list(enumerate(operations))
    indexed.sort(key=lambda pair: (pair[1].sequence, pair[1].id if pair[1].id is not None else 0, pair[0]))
    return [op for _, op in indexed]


def scale_for_quantity(bom, target_quantity) -> BomScaling:
    """Scale a loaded BOM (components with products, operations) to `target_quantity`."""
    if target_quantity is None or Decimal(str(target_quantity)) <= 0:
        raise ValidationError("Quantity must be greater than zero", field="quantity")
    target = Decimal(str(target_quantity))
    output = _effective_output(bom.output_quantity)

    components = []
    for comp in bom.components:
        product = comp.product
        components.append(
            ScaledComponent(
                product_id=comp.component_product_id,
                per_output_qty=to_qty(comp.qty_per_unit),
                required_qty=scale_quantity(comp.qty_per_unit, target, output),
                product_name=product.name if product is not None else None,
                uom=comp.uom or (product.uom if product is not None else None),
                unit_cost=to_qty(product.unit_cost) if product is not None else Decimal("0"),
            )
        )

    operations = [
        ScaledOperation(
            name=op.name,
            sequence=op.sequence,
            work_center_id=op.work_center_id,
            duration_mins=Decimal(str(op.duration_mins or 0)),
            operation_id=op.id,
            work_center_name=op.work_center.name if op.work_center is not None else None,
        )
        for op in ordered_operations(bom.operations)
    ]

    product = bom.product
    return BomScaling(
        bom_id=bom.id,
        product_id=bom.product_id,
        quantity=to_qty(target),
        output_quantity=to_qty(output),
        components=components,
        operations=operations,
        product_name=product.name if product is not None else None,
    )
