"""FORGE MES — FastAPI dependencies (auth, DB, permissions)."""
from fastapi import Depends, HTTPException, Request, status

from mes.db.session import get_db

# ── Permission keys ─────────────────────────────────────────────────────────
# Route files use these constants, never raw strings.
PERM_MO_READ = "mo:read"
PERM_MO_MANAGE = "mo:manage"
PERM_WO_OPERATE = "wo:operate"
PERM_BOMS_MANAGE = "boms:manage"
PERM_LEDGER_WRITE = "ledger:write"
PERM_CATALOG_MANAGE = "catalog:manage"
PERM_USERS_MANAGE = "users:manage"
PERM_REPORTS_READ = "reports:read"

# ── Role → permissions matrix ────────────────────────────────────────────────
_ADMIN_PERMS = {
    PERM_MO_READ, PERM_MO_MANAGE,
    PERM_WO_OPERATE,
    PERM_BOMS_MANAGE,
    PERM_LEDGER_WRITE,
    PERM_CATALOG_MANAGE,
    PERM_USERS_MANAGE,
    PERM_REPORTS_READ,
}

_MANAGER_PERMS = {
    PERM_MO_READ, PERM_MO_MANAGE,
    PERM_WO_OPERATE,
    PERM_BOMS_MANAGE,
    PERM_LEDGER_WRITE,
    PERM_CATALOG_MANAGE,
    PERM_REPORTS_READ,
}

_OPERATOR_PERMS = {
    PERM_MO_READ,
    PERM_WO_OPERATE,
}

PERMISSION_MATRIX: dict[str, set[str]] = {
    "ADMIN": _ADMIN_PERMS,
    "MANAGER": _MANAGER_PERMS,
    "OPERATOR": _OPERATOR_PERMS,
}


class CurrentUser:
    """User identity from the JWT, set on request.state by the auth middleware."""

    def __init__(self, id: int, email: str, role: str):
        self.id = id
        self.email = email
        self.role = role

    def has_permission(self, permission: str) -> bool:
        return permission in PERMISSION_MATRIX.get(self.role, set())


async def get_current_user(request: Request) -> CurrentUser | None:
    """Extract user from request.state (populated by auth middleware)."""
    return getattr(request.state, "user", None)


async def require_auth(request: Request) -> CurrentUser:
    """Require authenticated user. Raise 401 if not logged in."""
    user = getattr(request.state, "user", None)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def require_permission(permission: str):
    """Dependency factory: require specific RBAC permission."""

    async def _check(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
        if not user.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: '{permission}' required. Your role: {user.role}",
            )
        return user

    return _check
