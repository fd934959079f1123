"""
FastAPI Application Entry Point

Tableside front-of-house ordering service.

Endpoints:
    - GET  /api/tables, /api/menu/*: Reference data for the waiter view
    - POST /api/orders: Fire an order for a table
    - GET  /api/orders/active: Aggregated active orders
    - GET  /api/kitchen: Kitchen display buckets
    - POST /api/kitchen/items/{id}/start|ready: Kitchen item actions
    - GET  /api/pickup: Pickup board with serve eligibility
    - POST /api/pickup/orders/{id}/serve: Mark an order served
    - WS   /ws/orders: Live active order list
    - *    /api/register: Account registration
    - GET  /health: System health check
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import (
    Depends,
    FastAPI,
    Query,
    Request,
    Response,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from tableside.core.config import get_settings, setup_logging
from tableside.core.exceptions import TablesideError
from tableside.database import (
    async_session_maker,
    engine,
    get_db,
    get_session_maker,
    init_db,
)
from tableside.models import OrderStatus
from tableside.schemas import (
    ErrorResponse,
    HealthResponse,
    KitchenBucket,
    KitchenTicket,
    MenuCategoryResponse,
    MenuItemResponse,
    ModifierResponse,
    OrderCreate,
    OrderView,
    PickupOrder,
    Role,
    RoleResponse,
    StatusUpdate,
    TableResponse,
)
from tableside.seed import seed_reference_data
from tableside.services import menu, orders
from tableside.services.realtime import BaseChangeFeed, get_change_feed
from tableside.services.realtime.bridge import OrderListSubscription
from tableside.services.registration import register_user

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}

ROLES = [
    RoleResponse(
        role=Role.WAITER,
        label="Waiter",
        description="Pick a table, browse the menu and fire orders",
    ),
    RoleResponse(
        role=Role.KITCHEN,
        label="Kitchen",
        description="Start cooking and mark items ready",
    ),
    RoleResponse(
        role=Role.PICKUP,
        label="Pickup",
        description="Serve orders once every item is ready",
    ),
]


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    if settings.seed_reference_data:
        async with async_session_maker() as session:
            await seed_reference_data(session)

    feed = get_change_feed()
    logger.info(f"✅ Change Feed: {feed.provider_name}")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await feed.close()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Front-of-house ordering: waiters fire orders per table, the kitchen "
        "advances items, pickup staff serve completed orders."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES: dict[int, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍜 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> HealthResponse:
    """Verify the database and change feed are reachable."""

    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    feed_status = "healthy" if await feed.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, feed_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        change_feed=feed_status,
        timestamp=datetime.now(),
    )


@app.get("/api/roles", response_model=list[RoleResponse], tags=["Root"])
async def list_roles() -> list[RoleResponse]:
    """Staff roles available on a terminal."""
    return ROLES


# =============================================================================
# WAITER: REFERENCE DATA
# =============================================================================

@app.get("/api/tables", response_model=list[TableResponse], tags=["Waiter"])
async def list_tables(db: AsyncSession = Depends(get_db)) -> list[TableResponse]:
    """Tables ordered by table number."""
    tables = await menu.fetch_tables(db)
    return [TableResponse.model_validate(t) for t in tables]


@app.get(
    "/api/tables/{table_id}",
    response_model=TableResponse,
    responses=ERROR_RESPONSES,
    tags=["Waiter"],
)
async def get_table(table_id: int, db: AsyncSession = Depends(get_db)) -> TableResponse:
    return TableResponse.model_validate(await menu.fetch_table(db, table_id))


@app.get(
    "/api/menu/categories",
    response_model=list[MenuCategoryResponse],
    tags=["Waiter"],
)
async def list_menu_categories(
    db: AsyncSession = Depends(get_db),
) -> list[MenuCategoryResponse]:
    categories = await menu.fetch_menu_categories(db)
    return [MenuCategoryResponse.model_validate(c) for c in categories]


@app.get("/api/menu/items", response_model=list[MenuItemResponse], tags=["Waiter"])
async def list_menu_items(
    category_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[MenuItemResponse]:
    """Menu items in browse order, optionally for one category."""
    items = await menu.fetch_menu_items(db, category_id)
    return [MenuItemResponse.model_validate(i) for i in items]


@app.get("/api/menu/modifiers", response_model=list[ModifierResponse], tags=["Waiter"])
async def list_modifiers(db: AsyncSession = Depends(get_db)) -> list[ModifierResponse]:
    modifiers = await menu.fetch_modifiers(db)
    return [ModifierResponse.model_validate(m) for m in modifiers]


# =============================================================================
# ORDERS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderView,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Fire Order",
)
async def create_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> OrderView:
    """
    Fire a waiter's cart to the kitchen.

    The order and all of its items are created atomically.
    """
    logger.info(
        f"Firing order for table id {order_data.table_id} "
        f"({len(order_data.items)} line(s))"
    )
    return await orders.submit_order(db, order_data.table_id, order_data.items, feed)


@app.get("/api/orders/active", response_model=list[OrderView], tags=["Orders"])
async def list_active_orders(db: AsyncSession = Depends(get_db)) -> list[OrderView]:
    """Pending, cooking and ready orders, newest first."""
    return await orders.fetch_active_orders(db)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderView,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)) -> OrderView:
    """Get a specific order by ID."""
    return await orders.fetch_order(db, order_id)


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderView,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def change_order_status(
    order_id: int,
    update: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> OrderView:
    return await orders.update_order_status(db, order_id, update.status, feed)


@app.patch(
    "/api/order-items/{item_id}/status",
    response_model=OrderView,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def change_item_status(
    item_id: int,
    update: StatusUpdate,
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> OrderView:
    return await orders.update_item_status(db, item_id, update.status, feed)


# =============================================================================
# KITCHEN DISPLAY
# =============================================================================

@app.get("/api/kitchen", response_model=list[KitchenTicket], tags=["Kitchen"])
async def kitchen_display(
    bucket: KitchenBucket = Query(KitchenBucket.PENDING, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> list[KitchenTicket]:
    """Active orders restricted to the items in one status."""
    active = await orders.fetch_active_orders(db)
    return orders.kitchen_tickets(active, bucket)


@app.post(
    "/api/kitchen/items/{item_id}/start",
    response_model=OrderView,
    responses=ERROR_RESPONSES,
    tags=["Kitchen"],
    summary="Start Cooking",
)
async def start_cooking(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> OrderView:
    return await orders.update_item_status(db, item_id, OrderStatus.COOKING, feed)


@app.post(
    "/api/kitchen/items/{item_id}/ready",
    response_model=OrderView,
    responses=ERROR_RESPONSES,
    tags=["Kitchen"],
    summary="Mark Ready",
)
async def mark_ready(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> OrderView:
    return await orders.update_item_status(db, item_id, OrderStatus.READY, feed)


# =============================================================================
# PICKUP
# =============================================================================

@app.get("/api/pickup", response_model=list[PickupOrder], tags=["Pickup"])
async def pickup_board(db: AsyncSession = Depends(get_db)) -> list[PickupOrder]:
    """Active orders with their serve eligibility."""
    active = await orders.fetch_active_orders(db)
    return orders.pickup_board(active)


@app.post(
    "/api/pickup/orders/{order_id}/serve",
    response_model=OrderView,
    responses=ERROR_RESPONSES,
    tags=["Pickup"],
    summary="Mark Served",
)
async def serve_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    feed: BaseChangeFeed = Depends(get_change_feed),
) -> OrderView:
    return await orders.serve_order(db, order_id, feed)


# =============================================================================
# LIVE UPDATES
# =============================================================================

@app.websocket("/ws/orders")
async def orders_ws(
    websocket: WebSocket,
    feed: BaseChangeFeed = Depends(get_change_feed),
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> None:
    """
    Stream the active order list.

    Sends the current list on connect and a full refreshed list after
    every change to an order. The subscription lives as long as the
    connection.
    """
    await websocket.accept()

    async def push(active: list[OrderView]) -> None:
        await websocket.send_json([order.model_dump(mode="json") for order in active])

    # Every list, the first included, is sent from the subscription task
    subscription = OrderListSubscription(
        feed, session_maker, push, initial_refresh=True
    )
    await subscription.start()
    try:
        while True:
            # Client messages carry nothing; receiving detects disconnects
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Order list WebSocket disconnected")
    finally:
        await subscription.stop()


# =============================================================================
# REGISTRATION
# =============================================================================

@app.api_route(
    "/api/register",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    tags=["Registration"],
    summary="Register Account",
)
async def register(request: Request, db: AsyncSession = Depends(get_db)) -> Response:
    """
    Create a user account from {email, password, confirmPassword}.

    Every response carries permissive CORS headers.
    """
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    if request.method != "POST":
        return JSONResponse(
            status_code=405,
            content={"error": "Method not allowed"},
            headers=CORS_HEADERS,
        )

    try:
        payload = await request.json()
    except ValueError:
        payload = None

    result = await register_user(db, payload)
    return JSONResponse(
        status_code=result.status_code,
        content=result.body,
        headers=CORS_HEADERS,
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(TablesideError)
async def tableside_exception_handler(request: Request, exc: TablesideError) -> JSONResponse:
    """Render expected domain failures with their HTTP status."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, detail=exc.code).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tableside.main:app", host=settings.api_host, port=settings.api_port)
