"""
Domain Exceptions

Every error the ordering flow raises on purpose derives from
TablesideError. Each class carries the HTTP status and a machine-readable
code; the API layer turns them into ErrorResponse bodies.
"""

from typing import Optional


class TablesideError(Exception):
    """Base class for expected, client-visible failures."""

    status_code: int = 400
    code: str = "tableside_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(TablesideError):
    status_code = 404
    code = "not_found"
    entity = "Resource"

    def __init__(self, entity_id: int):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} #{entity_id} not found")


class TableNotFound(NotFoundError):
    code = "table_not_found"
    entity = "Table"


class MenuItemNotFound(NotFoundError):
    code = "menu_item_not_found"
    entity = "Menu item"


class ModifierNotFound(NotFoundError):
    code = "modifier_not_found"
    entity = "Modifier"


class OrderNotFound(NotFoundError):
    code = "order_not_found"
    entity = "Order"


class OrderItemNotFound(NotFoundError):
    code = "order_item_not_found"
    entity = "Order item"


# =============================================================================
# ORDER LIFECYCLE
# =============================================================================

class EmptyOrderError(TablesideError):
    status_code = 400
    code = "empty_order"

    def __init__(self):
        super().__init__("An order needs at least one item")


class InvalidStatusTransition(TablesideError):
    """Raised when a status write is not an allowed single forward step."""

    status_code = 409
    code = "invalid_status_transition"

    def __init__(self, subject: str, current: str, requested: str):
        self.subject = subject
        self.current = current
        self.requested = requested
        super().__init__(
            f"{subject} cannot move from '{current}' to '{requested}'"
        )


class OrderNotReady(TablesideError):
    status_code = 409
    code = "order_not_ready"

    def __init__(self, order_id: int, ready: int, total: int):
        self.order_id = order_id
        super().__init__(
            f"Order #{order_id} has {ready}/{total} items ready"
        )
