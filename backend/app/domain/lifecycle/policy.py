"""
Role sets per lifecycle operation.

Customers appear only where they may act on their own documents; the
ownership check itself happens in the service layer.
"""

from typing import Dict, FrozenSet

from backend.app.core.exceptions import InsufficientPermissionsError
from backend.app.models.enums import UserRole

ADMIN = UserRole.ADMIN
OPERATIONS = UserRole.OPERATIONS
WAREHOUSE = UserRole.WAREHOUSE
CUSTOMER = UserRole.CUSTOMER


class Operation:
    CREATE = "create"
    VIEW = "view"
    TRANSITION = "transition"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    ASSIGN = "assign"
    UPDATE_CARGO = "update_cargo"
    ADD_NOTE = "add_note"
    ADD_CHARGE = "add_charge"
    SOFT_DELETE = "soft_delete"
    RESTORE = "restore"
    HARD_DELETE = "hard_delete"
    EMPTY_TRASH = "empty_trash"
    VIEW_TRASH = "view_trash"
    RECEIVE = "receive"
    CONSOLIDATE = "consolidate"
    ISSUE_INVOICE = "issue_invoice"
    STATISTICS = "statistics"


ROLE_POLICY: Dict[str, FrozenSet[UserRole]] = {
    Operation.CREATE: frozenset({ADMIN, OPERATIONS, CUSTOMER}),
    Operation.VIEW: frozenset({ADMIN, OPERATIONS, WAREHOUSE, CUSTOMER}),
    Operation.TRANSITION: frozenset({ADMIN, OPERATIONS, WAREHOUSE}),
    Operation.CONFIRM: frozenset({ADMIN, OPERATIONS}),
    Operation.CANCEL: frozenset({ADMIN, OPERATIONS, CUSTOMER}),
    Operation.ASSIGN: frozenset({ADMIN, OPERATIONS}),
    Operation.UPDATE_CARGO: frozenset({ADMIN, OPERATIONS, WAREHOUSE, CUSTOMER}),
    Operation.ADD_NOTE: frozenset({ADMIN, OPERATIONS, WAREHOUSE}),
    Operation.ADD_CHARGE: frozenset({ADMIN, OPERATIONS}),
    Operation.SOFT_DELETE: frozenset({ADMIN, OPERATIONS, CUSTOMER}),
    Operation.RESTORE: frozenset({ADMIN, OPERATIONS}),
    Operation.HARD_DELETE: frozenset({ADMIN}),
    Operation.EMPTY_TRASH: frozenset({ADMIN}),
    Operation.VIEW_TRASH: frozenset({ADMIN, OPERATIONS}),
    Operation.RECEIVE: frozenset({ADMIN, OPERATIONS, WAREHOUSE}),
    Operation.CONSOLIDATE: frozenset({ADMIN, OPERATIONS, WAREHOUSE}),
    Operation.ISSUE_INVOICE: frozenset({ADMIN, OPERATIONS}),
    Operation.STATISTICS: frozenset({ADMIN, OPERATIONS, WAREHOUSE}),
}


def allowed_roles(operation: str) -> FrozenSet[UserRole]:
    return ROLE_POLICY[operation]


def authorize(actor, operation: str) -> None:
    """Raise InsufficientPermissionsError unless actor's role may perform operation."""
    if actor.role not in ROLE_POLICY[operation]:
        raise InsufficientPermissionsError(
            f"Role {actor.role.value} may not {operation.replace('_', ' ')}",
            details={"operation": operation, "role": actor.role.value}
        )
