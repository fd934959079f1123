"""
SQLAlchemy Database Models

Front-of-house ordering schema:
- Reference data: tables, menu categories, menu items, modifiers
- Orders and their items, with chosen modifiers per item
- Registered user accounts
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Table as SATable,
    Text,
)
from sqlalchemy.orm import relationship

from tableside.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    """Preparation workflow shared by orders and order items."""
    PENDING = "pending"
    COOKING = "cooking"
    READY = "ready"
    SERVED = "served"


ACTIVE_ORDER_STATUSES = (OrderStatus.PENDING, OrderStatus.COOKING, OrderStatus.READY)

status_enum = Enum(
    OrderStatus,
    name="order_status",
    values_callable=lambda members: [m.value for m in members],
)


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Table(Base):
    """A dining table on the floor plan."""
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    table_number = Column(Integer, nullable=False, unique=True)
    capacity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_tables_capacity_positive"),
    )

    def __repr__(self):
        return f"<Table {self.table_number} ({self.capacity} seats)>"


class MenuCategory(Base):
    __tablename__ = "menu_categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)

    items = relationship("MenuItem", back_populates="category")

    def __repr__(self):
        return f"<MenuCategory {self.name}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    category_id = Column(
        Integer, ForeignKey("menu_categories.id"), nullable=False, index=True
    )
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    display_order = Column(Integer, nullable=False, default=0)

    category = relationship("MenuCategory", back_populates="items")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_menu_items_price_non_negative"),
    )

    def __repr__(self):
        return f"<MenuItem {self.name} ${self.price:.2f}>"


class Modifier(Base):
    """
    A priced option attachable to an order item.

    `category` is a free-text grouping label such as "Spice Level".
    """
    __tablename__ = "modifiers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    category = Column(String(100), nullable=False)
    name = Column(String(100), nullable=False)
    price_adjustment = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        CheckConstraint(
            "price_adjustment >= 0", name="ck_modifiers_price_adjustment_non_negative"
        ),
    )

    def __repr__(self):
        return f"<Modifier {self.category}: {self.name}>"


# =============================================================================
# ORDERS
# =============================================================================

order_item_modifiers = SATable(
    "order_item_modifiers",
    Base.metadata,
    Column(
        "order_item_id", Integer, ForeignKey("order_items.id"), primary_key=True
    ),
    Column("modifier_id", Integer, ForeignKey("modifiers.id"), primary_key=True),
)


class Order(Base):
    """
    An order fired by a waiter for one table.

    The stored status follows the statuses of its items; see
    tableside.services.order_status.derive_order_status.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False, index=True)
    status = Column(
        status_enum,
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    table = relationship("Table")
    items = relationship(
        "OrderItem",
        back_populates="order",
        order_by=lambda: [OrderItem.created_at, OrderItem.id],
    )

    def __repr__(self):
        return f"<Order #{self.id} - table {self.table_id} - {self.status.value}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    status = Column(
        status_enum,
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    special_requests = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")
    modifiers = relationship(
        "Modifier",
        secondary=order_item_modifiers,
        order_by="Modifier.id",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    def __repr__(self):
        return f"<OrderItem #{self.id} x{self.quantity} - {self.status.value}>"


# =============================================================================
# ACCOUNTS
# =============================================================================

class User(Base):
    """Registered account; email is stored lowercased."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User #{self.id} {self.email}>"
