"""FORGE MES — Domain error taxonomy.

Services raise these; the API layer renders them through a single exception
handler into the standard error envelope.
"""
from typing import Any


class DomainError(Exception):
    """Base class for every error the services raise on purpose."""

    code = "domain_error"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def field_errors(self) -> list[dict]:
        return []


class NotFoundError(DomainError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(DomainError):
    """Malformed command input. The caller can always fix this."""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field

    def field_errors(self) -> list[dict]:
        if not self.field:
            return []
        return [{"field": self.field, "message": self.message}]


class InvalidTransitionError(DomainError):
    """A lifecycle operation was invoked outside its allowed states."""

    code = "invalid_transition"
    status_code = 409

    def __init__(self, entity: str, entity_id: Any, current: str, operation: str):
        super().__init__(
            f"Cannot {operation} {entity} {entity_id} in status '{current}'",
            details={
                "entity": entity,
                "id": entity_id,
                "status": current,
                "operation": operation,
            },
        )
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.operation = operation


class ShortfallError(DomainError):
    """Reservation refused: at least one component is short."""

    code = "insufficient_stock"
    status_code = 409

    def __init__(self, shortages: list):
        names = ", ".join(
            f"{s.product_name or s.product_id} (short {s.shortfall})" for s in shortages
        )
        super().__init__(
            f"Insufficient stock for: {names}",
            details={
                "shortages": [
                    {
                        "product_id": s.product_id,
                        "product_name": s.product_name,
                        "required_qty": str(s.required_qty),
                        "on_hand": str(s.on_hand),
                        "shortfall": str(s.shortfall),
                    }
                    for s in shortages
                ]
            },
        )
        self.shortages = shortages

    @property
    def product_ids(self) -> list[int]:
        return [s.product_id for s in self.shortages]


class ReferentialError(DomainError):
    """Cross-entity reference is inconsistent (wrong owner, still in use)."""

    code = "referential_error"
    status_code = 409
