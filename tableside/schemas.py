"""
Pydantic Schemas for Request/Response Validation

Covers the waiter, kitchen and pickup views plus registration.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tableside.models import OrderStatus


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    """Staff roles selectable on the front-of-house terminal."""
    WAITER = "waiter"
    KITCHEN = "kitchen"
    PICKUP = "pickup"


class KitchenBucket(str, Enum):
    """Statuses the kitchen display can filter on."""
    PENDING = "pending"
    COOKING = "cooking"
    READY = "ready"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class TableResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    table_number: int
    capacity: int


class MenuCategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    display_order: int


class MenuItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    name: str
    description: str
    price: float
    display_order: int


class ModifierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    name: str
    price_adjustment: float


class RoleResponse(BaseModel):
    role: Role
    label: str
    description: str


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CartLine(BaseModel):
    """One line of a waiter's cart."""
    menu_item_id: int = Field(..., examples=[1])
    quantity: int = Field(default=1, ge=1, le=99, examples=[2])
    modifier_ids: List[int] = Field(default_factory=list, examples=[[1, 4]])
    special_requests: Optional[str] = Field(
        None, max_length=500, examples=["No scallions"]
    )


class OrderCreate(BaseModel):
    """Request schema for firing an order."""
    table_id: int = Field(..., examples=[1])
    items: List[CartLine] = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: OrderStatus = Field(..., examples=["cooking"])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemView(BaseModel):
    """An order item with its menu item and chosen modifiers."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    menu_item_id: int
    menu_item_name: str
    unit_price: float
    quantity: int
    status: OrderStatus
    special_requests: Optional[str] = None
    modifiers: List[ModifierResponse] = Field(default_factory=list)
    line_total: float
    created_at: datetime
    updated_at: datetime


class OrderView(BaseModel):
    """Denormalized order as shown on every staff screen."""
    id: int
    table: TableResponse
    status: OrderStatus
    items: List[OrderItemView]
    total: float
    created_at: datetime
    updated_at: datetime


class KitchenTicket(BaseModel):
    """An order restricted to the items in one kitchen bucket."""
    order_id: int
    table_number: int
    bucket: KitchenBucket
    created_at: datetime
    items: List[OrderItemView]


class PickupOrder(OrderView):
    ready_items: int
    total_items: int
    ready_for_serving: bool


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    change_feed: str
    timestamp: datetime


# =============================================================================
# REGISTRATION
# =============================================================================

class RegisterRequest(BaseModel):
    """
    Signup payload. Fields default to blank so that missing keys
    surface as the "Required fields are missing" error.
    """
    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    password: str = ""
    confirm_password: str = Field(default="", alias="confirmPassword")


class RegisterResponse(BaseModel):
    id: int
    email: str
