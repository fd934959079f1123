import pytest
from sqlalchemy import func, select

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
from tableside.models import Order, OrderItem, OrderStatus, order_item_modifiers
from tableside.schemas import CartLine, KitchenBucket
from tableside.services import menu
from tableside.services.orders import (
    fetch_active_orders,
    fetch_order,
    kitchen_tickets,
    pickup_board,
    serve_order,
    submit_order,
    update_item_status,
    update_order_status,
)


async def count_rows(db, model):
    result = await db.execute(select(func.count()).select_from(model))
    return result.scalar()


# =============================================================================
# REFERENCE DATA
# =============================================================================

async def test_reference_readers_return_browse_order(db, catalogue):
    tables = await menu.fetch_tables(db)
    assert [t.table_number for t in tables] == sorted(t.table_number for t in tables)

    categories = await menu.fetch_menu_categories(db)
    assert [c.name for c in categories] == ["Starters", "Ramen", "Rice Bowls", "Drinks"]

    ramen = await menu.fetch_menu_items(db, categories[1].id)
    assert [i.name for i in ramen][0] == "Tonkotsu Ramen"
    assert all(i.category_id == categories[1].id for i in ramen)

    assert len(await menu.fetch_menu_items(db)) == 12
    assert len(await menu.fetch_modifiers(db)) == 9


async def test_fetch_unknown_table(db):
    with pytest.raises(TableNotFound):
        await menu.fetch_table(db, 999)


# =============================================================================
# SUBMISSION
# =============================================================================

async def test_firing_two_lines_creates_one_order_with_two_pending_items(
    db, catalogue, two_line_cart
):
    table_id = catalogue["tables"][3]

    view = await submit_order(db, table_id, two_line_cart)

    assert await count_rows(db, Order) == 1
    assert await count_rows(db, OrderItem) == 2
    assert view.status == OrderStatus.PENDING
    assert view.table.table_number == 3
    assert [item.status for item in view.items] == [OrderStatus.PENDING] * 2

    active = await fetch_active_orders(db)
    assert [order.id for order in active] == [view.id]
    assert len(active[0].items) == 2
    assert all(item.status == OrderStatus.PENDING for item in active[0].items)


async def test_order_view_carries_menu_details_and_totals(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][1], two_line_cart)

    ramen, gyoza = view.items
    assert ramen.menu_item_name == "Tonkotsu Ramen"
    assert ramen.special_requests == "No scallions"
    assert sorted(m.name for m in ramen.modifiers) == ["Extra Chashu", "Inferno"]
    assert ramen.line_total == pytest.approx((15.99 + 3.50 + 1.00) * 2)

    assert gyoza.modifiers == []
    assert gyoza.special_requests is None
    assert gyoza.line_total == pytest.approx(7.50)

    assert view.total == pytest.approx(ramen.line_total + gyoza.line_total)


async def test_blank_special_requests_are_stored_as_null(db, catalogue):
    line = CartLine(
        menu_item_id=catalogue["items"]["Edamame"],
        special_requests="   ",
    )
    view = await submit_order(db, catalogue["tables"][1], [line])
    assert view.items[0].special_requests is None


async def test_duplicate_modifier_ids_are_linked_once(db, catalogue):
    spicy = catalogue["modifiers"]["Hot"]
    line = CartLine(
        menu_item_id=catalogue["items"]["Miso Ramen"],
        modifier_ids=[spicy, spicy],
    )
    view = await submit_order(db, catalogue["tables"][1], [line])
    assert [m.id for m in view.items[0].modifiers] == [spicy]


async def test_empty_cart_is_rejected(db, catalogue):
    with pytest.raises(EmptyOrderError):
        await submit_order(db, catalogue["tables"][1], [])
    assert await count_rows(db, Order) == 0


async def test_unknown_table_is_rejected(db, two_line_cart):
    with pytest.raises(TableNotFound):
        await submit_order(db, 999, two_line_cart)
    assert await count_rows(db, Order) == 0


async def test_unknown_menu_item_writes_nothing(db, catalogue, two_line_cart):
    cart = two_line_cart + [CartLine(menu_item_id=999)]
    with pytest.raises(MenuItemNotFound):
        await submit_order(db, catalogue["tables"][1], cart)

    assert await count_rows(db, Order) == 0
    assert await count_rows(db, OrderItem) == 0


async def test_unknown_modifier_writes_nothing(db, catalogue, two_line_cart):
    cart = two_line_cart + [
        CartLine(menu_item_id=catalogue["items"]["Edamame"], modifier_ids=[999])
    ]
    with pytest.raises(ModifierNotFound):
        await submit_order(db, catalogue["tables"][1], cart)

    assert await count_rows(db, Order) == 0
    assert await count_rows(db, OrderItem) == 0
    assert await count_rows(db, order_item_modifiers) == 0


# =============================================================================
# AGGREGATION
# =============================================================================

async def test_active_orders_are_newest_first(db, catalogue, two_line_cart):
    first = await submit_order(db, catalogue["tables"][1], two_line_cart)
    second = await submit_order(db, catalogue["tables"][2], two_line_cart)

    active = await fetch_active_orders(db)
    assert [order.id for order in active] == [second.id, first.id]


async def test_aggregation_is_idempotent(db, catalogue, two_line_cart):
    await submit_order(db, catalogue["tables"][1], two_line_cart)
    await submit_order(db, catalogue["tables"][2], two_line_cart)

    first = await fetch_active_orders(db)
    second = await fetch_active_orders(db)
    assert [o.model_dump() for o in first] == [o.model_dump() for o in second]


async def test_fetch_unknown_order(db):
    with pytest.raises(OrderNotFound):
        await fetch_order(db, 42)


async def test_no_active_orders_is_an_empty_list(db):
    assert await fetch_active_orders(db) == []


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

async def test_item_moves_between_kitchen_buckets(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][1], two_line_cart)
    ramen_id, gyoza_id = (item.id for item in view.items)

    def bucket_items(orders):
        return {
            bucket: [item.id for t in kitchen_tickets(orders, bucket) for item in t.items]
            for bucket in KitchenBucket
        }

    await update_item_status(db, ramen_id, OrderStatus.COOKING)
    buckets = bucket_items(await fetch_active_orders(db))
    assert buckets[KitchenBucket.PENDING] == [gyoza_id]
    assert buckets[KitchenBucket.COOKING] == [ramen_id]
    assert buckets[KitchenBucket.READY] == []

    await update_item_status(db, ramen_id, OrderStatus.READY)
    buckets = bucket_items(await fetch_active_orders(db))
    assert buckets[KitchenBucket.PENDING] == [gyoza_id]
    assert buckets[KitchenBucket.COOKING] == []
    assert buckets[KitchenBucket.READY] == [ramen_id]

    for item_id in (ramen_id, gyoza_id):
        appearances = sum(ids.count(item_id) for ids in buckets.values())
        assert appearances == 1


async def test_order_status_follows_items(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][1], two_line_cart)
    ramen_id, gyoza_id = (item.id for item in view.items)

    view = await update_item_status(db, ramen_id, OrderStatus.COOKING)
    assert view.status == OrderStatus.COOKING

    await update_item_status(db, ramen_id, OrderStatus.READY)
    await update_item_status(db, gyoza_id, OrderStatus.COOKING)
    view = await update_item_status(db, gyoza_id, OrderStatus.READY)
    assert view.status == OrderStatus.READY


async def test_item_cannot_skip_or_repeat_a_step(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][1], two_line_cart)
    item_id = view.items[0].id

    with pytest.raises(InvalidStatusTransition):
        await update_item_status(db, item_id, OrderStatus.READY)

    await update_item_status(db, item_id, OrderStatus.COOKING)
    with pytest.raises(InvalidStatusTransition):
        # A second screen acting on the stale "pending" card
        await update_item_status(db, item_id, OrderStatus.COOKING)

    with pytest.raises(InvalidStatusTransition):
        await update_item_status(db, item_id, OrderStatus.PENDING)

    current = await fetch_order(db, view.id)
    assert current.items[0].status == OrderStatus.COOKING


async def test_unknown_item(db):
    with pytest.raises(OrderItemNotFound):
        await update_item_status(db, 404, OrderStatus.COOKING)


async def test_serve_requires_every_item_ready(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][5], two_line_cart)
    ramen_id, gyoza_id = (item.id for item in view.items)

    for item_id in (ramen_id, gyoza_id):
        await update_item_status(db, item_id, OrderStatus.COOKING)
    await update_item_status(db, ramen_id, OrderStatus.READY)

    board = pickup_board(await fetch_active_orders(db))
    assert board[0].ready_items == 1
    assert board[0].total_items == 2
    assert not board[0].ready_for_serving

    with pytest.raises(OrderNotReady):
        await serve_order(db, view.id)

    await update_item_status(db, gyoza_id, OrderStatus.READY)
    board = pickup_board(await fetch_active_orders(db))
    assert board[0].ready_for_serving

    served = await serve_order(db, view.id)
    assert served.status == OrderStatus.SERVED
    assert all(item.status == OrderStatus.SERVED for item in served.items)
    assert await fetch_active_orders(db) == []


async def test_served_order_is_terminal(db, catalogue):
    line = CartLine(menu_item_id=catalogue["items"]["Green Tea"])
    view = await submit_order(db, catalogue["tables"][1], [line])
    item_id = view.items[0].id
    await update_item_status(db, item_id, OrderStatus.COOKING)
    await update_item_status(db, item_id, OrderStatus.READY)
    await serve_order(db, view.id)

    with pytest.raises(InvalidStatusTransition):
        await serve_order(db, view.id)
    with pytest.raises(InvalidStatusTransition):
        await update_item_status(db, item_id, OrderStatus.PENDING)


async def test_order_level_transitions_are_guarded(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][1], two_line_cart)

    with pytest.raises(InvalidStatusTransition):
        await update_order_status(db, view.id, OrderStatus.READY)

    updated = await update_order_status(db, view.id, OrderStatus.COOKING)
    assert updated.status == OrderStatus.COOKING

    with pytest.raises(OrderNotReady):
        await update_order_status(db, view.id, OrderStatus.SERVED)

    with pytest.raises(OrderNotFound):
        await update_order_status(db, 999, OrderStatus.COOKING)


async def test_item_progress_never_moves_order_backwards(db, catalogue, two_line_cart):
    view = await submit_order(db, catalogue["tables"][1], two_line_cart)
    await update_order_status(db, view.id, OrderStatus.COOKING)
    await update_order_status(db, view.id, OrderStatus.READY)

    updated = await update_item_status(db, view.items[0].id, OrderStatus.COOKING)

    assert updated.status == OrderStatus.READY
    assert updated.items[0].status == OrderStatus.COOKING
    assert updated.updated_at >= view.updated_at
    assert (await fetch_order(db, view.id)).status == OrderStatus.READY
