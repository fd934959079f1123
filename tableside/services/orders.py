"""
Order Service

Writes, reads and status transitions for orders:

- submit_order: fire a cart as one order plus its items, atomically
- fetch_active_orders / fetch_order: denormalized order views, loaded
  with a fixed number of batched queries regardless of item count
- update_item_status / update_order_status / serve_order: guarded
  transitions; each write is conditional on the status it was checked
  against, so concurrent screens cannot both win the same step
- kitchen_tickets / pickup_board: the kitchen and pickup projections
  of the active order list

Every committed change to an order row is published on the change feed.
"""

import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tableside.core.exceptions import (
    EmptyOrderError,
    InvalidStatusTransition,
    MenuItemNotFound,
    ModifierNotFound,
    OrderItemNotFound,
    OrderNotFound,
    OrderNotReady,
    TableNotFound,
)
from tableside.models import (
    ACTIVE_ORDER_STATUSES,
    MenuItem,
    Modifier,
    Order,
    OrderItem,
    OrderStatus,
    Table,
    utcnow,
)
from tableside.schemas import (
    CartLine,
    KitchenBucket,
    KitchenTicket,
    ModifierResponse,
    OrderItemView,
    OrderView,
    PickupOrder,
    TableResponse,
)
from tableside.services.order_status import (
    count_ready,
    derive_order_status,
    earlier_statuses,
    ensure_transition,
    is_ready_for_serving,
)
from tableside.services.realtime import (
    ORDERS_TABLE,
    BaseChangeFeed,
    ChangeEvent,
    ChangeType,
)

logger = logging.getLogger(__name__)


# =============================================================================
# VIEW BUILDERS
# =============================================================================

def build_item_view(item: OrderItem) -> OrderItemView:
    unit_price = item.menu_item.price
    adjustments = sum(m.price_adjustment for m in item.modifiers)
    return OrderItemView(
        id=item.id,
        order_id=item.order_id,
        menu_item_id=item.menu_item_id,
        menu_item_name=item.menu_item.name,
        unit_price=unit_price,
        quantity=item.quantity,
        status=item.status,
        special_requests=item.special_requests,
        modifiers=[ModifierResponse.model_validate(m) for m in item.modifiers],
        line_total=round((unit_price + adjustments) * item.quantity, 2),
        created_at=item.created_at,
        updated_at=item.updated_at,
    )


def build_order_view(order: Order) -> OrderView:
    items = [build_item_view(item) for item in order.items]
    return OrderView(
        id=order.id,
        table=TableResponse.model_validate(order.table),
        status=order.status,
        items=items,
        total=round(sum(item.line_total for item in items), 2),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _order_query():
    """Orders with table, items, menu items and modifiers batch-loaded."""
    return (
        select(Order)
        .options(
            selectinload(Order.table),
            selectinload(Order.items).selectinload(OrderItem.menu_item),
            selectinload(Order.items).selectinload(OrderItem.modifiers),
        )
        .execution_options(populate_existing=True)
    )


# =============================================================================
# READ PATH
# =============================================================================

async def fetch_active_orders(db: AsyncSession) -> list[OrderView]:
    """
    All orders that are not yet served, newest first.

    Any database error propagates; no partial list is returned.
    """
    query = (
        _order_query()
        .where(Order.status.in_(ACTIVE_ORDER_STATUSES))
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    result = await db.execute(query)
    return [build_order_view(order) for order in result.scalars().all()]


async def _load_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(_order_query().where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


async def fetch_order(db: AsyncSession, order_id: int) -> OrderView:
    """One order of any status."""
    return build_order_view(await _load_order(db, order_id))


# =============================================================================
# WRITE PATH
# =============================================================================

async def _notify(
    feed: Optional[BaseChangeFeed],
    event_type: ChangeType,
    order_id: int,
) -> None:
    """Publish an orders change; the write is already committed either way."""
    if feed is None:
        return
    try:
        await feed.publish(ChangeEvent(ORDERS_TABLE, event_type, order_id))
    except Exception as e:
        logger.error(f"Failed to publish change for order #{order_id}: {e}")


async def submit_order(
    db: AsyncSession,
    table_id: int,
    lines: Iterable[CartLine],
    feed: Optional[BaseChangeFeed] = None,
) -> OrderView:
    """
    Fire a cart for a table.

    The order, its items and their modifier links are written in one
    transaction: either the whole order is committed or nothing is.

    Raises:
        EmptyOrderError: No cart lines
        TableNotFound / MenuItemNotFound / ModifierNotFound: Unknown ids
    """
    lines = list(lines)
    if not lines:
        raise EmptyOrderError()

    if await db.get(Table, table_id) is None:
        raise TableNotFound(table_id)

    menu_item_ids = {line.menu_item_id for line in lines}
    result = await db.execute(select(MenuItem.id).where(MenuItem.id.in_(menu_item_ids)))
    missing_items = menu_item_ids - set(result.scalars().all())
    if missing_items:
        raise MenuItemNotFound(min(missing_items))

    modifier_ids = {mid for line in lines for mid in line.modifier_ids}
    modifiers: dict[int, Modifier] = {}
    if modifier_ids:
        result = await db.execute(select(Modifier).where(Modifier.id.in_(modifier_ids)))
        modifiers = {m.id: m for m in result.scalars().all()}
        missing_modifiers = modifier_ids - set(modifiers)
        if missing_modifiers:
            raise ModifierNotFound(min(missing_modifiers))

    try:
        order = Order(table_id=table_id, status=OrderStatus.PENDING)
        db.add(order)
        await db.flush()

        for line in lines:
            special_requests = (line.special_requests or "").strip() or None
            db.add(OrderItem(
                order_id=order.id,
                menu_item_id=line.menu_item_id,
                quantity=line.quantity,
                status=OrderStatus.PENDING,
                special_requests=special_requests,
                modifiers=[modifiers[mid] for mid in dict.fromkeys(line.modifier_ids)],
            ))

        await db.commit()
    except Exception:
        await db.rollback()
        logger.error(f"Order for table id {table_id} rolled back")
        raise

    logger.info(f"Order #{order.id} fired for table id {table_id} ({len(lines)} item(s))")
    await _notify(feed, ChangeType.INSERT, order.id)
    return await fetch_order(db, order.id)


async def _sync_order_status(db: AsyncSession, order_id: int) -> OrderStatus:
    """
    Advance the order to the status derived from its items and bump
    updated_at. The stored status never moves backwards, so an order
    already advanced past its items keeps its status.

    Returns the order's stored status after the write.
    """
    result = await db.execute(
        select(OrderItem.status).where(OrderItem.order_id == order_id)
    )
    derived = derive_order_status(result.scalars().all())
    now = utcnow()

    result = await db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status.in_(earlier_statuses(derived)))
        .values(status=derived, updated_at=now)
    )
    if result.rowcount:
        return derived

    await db.execute(update(Order).where(Order.id == order_id).values(updated_at=now))
    result = await db.execute(select(Order.status).where(Order.id == order_id))
    return result.scalar_one()


async def update_item_status(
    db: AsyncSession,
    item_id: int,
    status: OrderStatus,
    feed: Optional[BaseChangeFeed] = None,
) -> OrderView:
    """
    Move one order item a single step forward.

    Returns the refreshed view of the item's order.

    Raises:
        OrderItemNotFound: Unknown item
        InvalidStatusTransition: Not the next step, or another screen
            moved the item first
    """
    subject = f"Order item #{item_id}"
    result = await db.execute(
        select(OrderItem.order_id, OrderItem.status).where(OrderItem.id == item_id)
    )
    row = result.one_or_none()
    if row is None:
        raise OrderItemNotFound(item_id)
    order_id, current = row

    try:
        ensure_transition(subject, current, status)
    except InvalidStatusTransition:
        logger.warning(f"Rejected {subject}: {current.value} -> {status.value}")
        raise

    try:
        result = await db.execute(
            update(OrderItem)
            .where(OrderItem.id == item_id, OrderItem.status == current)
            .values(status=status, updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise InvalidStatusTransition(subject, current.value, status.value)

        order_status = await _sync_order_status(db, order_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"{subject}: {current.value} -> {status.value} "
        f"(order #{order_id} now {order_status.value})"
    )
    await _notify(feed, ChangeType.UPDATE, order_id)
    return await fetch_order(db, order_id)


async def serve_order(
    db: AsyncSession,
    order_id: int,
    feed: Optional[BaseChangeFeed] = None,
) -> OrderView:
    """
    Mark an order and all of its items served.

    Raises:
        OrderNotFound: Unknown order
        InvalidStatusTransition: Order already served, or served concurrently
        OrderNotReady: Some item is not ready yet
    """
    subject = f"Order #{order_id}"
    order = await _load_order(db, order_id)
    current = order.status

    if current == OrderStatus.SERVED:
        raise InvalidStatusTransition(subject, current.value, OrderStatus.SERVED.value)

    statuses = [item.status for item in order.items]
    if not is_ready_for_serving(statuses):
        logger.warning(f"Rejected serve for {subject}: not every item is ready")
        raise OrderNotReady(order_id, count_ready(statuses), len(statuses))

    now = utcnow()
    try:
        result = await db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == current)
            .values(status=OrderStatus.SERVED, updated_at=now)
        )
        if result.rowcount == 0:
            raise InvalidStatusTransition(subject, current.value, OrderStatus.SERVED.value)

        await db.execute(
            update(OrderItem)
            .where(
                OrderItem.order_id == order_id,
                OrderItem.status == OrderStatus.READY,
            )
            .values(status=OrderStatus.SERVED, updated_at=now)
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"{subject} served")
    await _notify(feed, ChangeType.UPDATE, order_id)
    return await fetch_order(db, order_id)


async def update_order_status(
    db: AsyncSession,
    order_id: int,
    status: OrderStatus,
    feed: Optional[BaseChangeFeed] = None,
) -> OrderView:
    """
    Move an order a single step forward.

    Serving goes through serve_order so that the all-items-ready gate
    always applies.
    """
    if status == OrderStatus.SERVED:
        return await serve_order(db, order_id, feed)

    subject = f"Order #{order_id}"
    result = await db.execute(select(Order.status).where(Order.id == order_id))
    current = result.scalar_one_or_none()
    if current is None:
        raise OrderNotFound(order_id)

    try:
        ensure_transition(subject, current, status)
    except InvalidStatusTransition:
        logger.warning(f"Rejected {subject}: {current.value} -> {status.value}")
        raise

    try:
        result = await db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == current)
            .values(status=status, updated_at=utcnow())
        )
        if result.rowcount == 0:
            raise InvalidStatusTransition(subject, current.value, status.value)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(f"{subject}: {current.value} -> {status.value}")
    await _notify(feed, ChangeType.UPDATE, order_id)
    return await fetch_order(db, order_id)


# =============================================================================
# ROLE PROJECTIONS
# =============================================================================

def kitchen_tickets(
    orders: Sequence[OrderView],
    bucket: KitchenBucket,
) -> list[KitchenTicket]:
    """
    Orders that have at least one item in `bucket`, each showing only
    those items. Order of `orders` is preserved.
    """
    status = OrderStatus(bucket.value)
    tickets = []
    for order in orders:
        items = [item for item in order.items if item.status == status]
        if not items:
            continue
        tickets.append(KitchenTicket(
            order_id=order.id,
            table_number=order.table.table_number,
            bucket=bucket,
            created_at=order.created_at,
            items=items,
        ))
    return tickets


def pickup_board(orders: Sequence[OrderView]) -> list[PickupOrder]:
    """Active orders annotated with whether they can be served."""
    board = []
    for order in orders:
        statuses = [item.status for item in order.items]
        board.append(PickupOrder(
            **order.model_dump(),
            ready_items=count_ready(statuses),
            total_items=len(statuses),
            ready_for_serving=is_ready_for_serving(statuses),
        ))
    return board
