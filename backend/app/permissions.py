"""
Roles, actors and the operation permission table.

WHY: Every core operation receives an explicit Actor (role + identity) from the
route layer. Nothing inside the services reads request or session state.
The permission table below is the single place that says which roles may
invoke which operation; each service checks it once on entry.

ROLES:
- SELLER: owns orders; sees and changes only their own orders and payouts
- PRINTER: produces orders, owns the warehouse
- ADMINISTRATOR: bypasses seller scoping, manages payouts, debts and expenses
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import Forbidden


class Role(str, Enum):
    SELLER = "Seller"
    PRINTER = "Printer"
    ADMINISTRATOR = "Administrator"

    @classmethod
    def parse(cls, value: str) -> "Role":
        try:
            return cls(value)
        except ValueError:
            raise ValueError(
                f"Invalid role '{value}'. Must be one of: {', '.join(r.value for r in cls)}"
            )


@dataclass(frozen=True)
class Actor:
    """Pre-validated caller identity threaded into every core call."""
    role: Role
    username: str
    user_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMINISTRATOR

    @property
    def is_seller(self) -> bool:
        return self.role is Role.SELLER

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(role=Role.parse(user.role), username=user.username, user_id=user.id)


# =============================================================================
# OPERATION PERMISSIONS
# =============================================================================

_ALL_ROLES = frozenset(Role)

OPERATION_PERMISSIONS: dict[str, frozenset[Role]] = {
    # Orders
    "CREATE_ORDER": frozenset({Role.SELLER, Role.ADMINISTRATOR}),
    "VIEW_ORDERS": _ALL_ROLES,
    "EDIT_ORDER": frozenset({Role.SELLER, Role.ADMINISTRATOR}),
    "TRANSITION_ORDER_STATUS": _ALL_ROLES,
    "PRINTER_CHECK": frozenset({Role.PRINTER}),
    "GET_CHANGES": _ALL_ROLES,

    # Warehouse
    "USE_FROM_WAREHOUSE": frozenset({Role.PRINTER}),
    "ADD_TO_WAREHOUSE": frozenset({Role.PRINTER}),
    "CHECK_WAREHOUSE": frozenset({Role.PRINTER}),
    "VIEW_WAREHOUSE": frozenset({Role.PRINTER, Role.ADMINISTRATOR}),

    # Payouts
    "BUILD_PAYOUT": frozenset({Role.SELLER, Role.ADMINISTRATOR}),
    "VIEW_PAYOUTS": frozenset({Role.SELLER, Role.ADMINISTRATOR}),
    "UPDATE_PAYOUT_STATUS": frozenset({Role.ADMINISTRATOR}),

    # Debts and expenses
    "VIEW_DEBTS": frozenset({Role.ADMINISTRATOR}),
    "OPEN_DEBT": frozenset({Role.ADMINISTRATOR}),
    "RECORD_DEBT_PAYMENT": frozenset({Role.ADMINISTRATOR}),
    "VIEW_EXPENSES": frozenset({Role.ADMINISTRATOR}),
    "RECORD_EXPENSE": frozenset({Role.ADMINISTRATOR}),
}


def check_permission(actor: Actor, operation: str) -> None:
    """
    Raise Forbidden unless the actor's role may invoke the operation.

    Unknown operation codes are a programming error and fail loudly.
    """
    allowed = OPERATION_PERMISSIONS.get(operation)
    if allowed is None:
        raise KeyError(f"Unknown operation '{operation}'")
    if actor is None:
        raise Forbidden("Authentication required", operation=operation)
    if actor.role not in allowed:
        raise Forbidden(
            f"Role '{actor.role.value}' may not perform {operation}",
            operation=operation,
            role=actor.role.value,
        )


def ensure_owns(actor: Actor, seller: str) -> None:
    """Sellers may only touch records they own; other roles pass."""
    if actor.is_seller and seller != actor.username:
        raise Forbidden("Sellers may only access their own records", seller=seller)


def seller_scope(actor: Actor) -> str | None:
    """Seller username to filter by, or None when the actor sees everything."""
    return actor.username if actor.is_seller else None
