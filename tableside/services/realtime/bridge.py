"""
Order List Subscription

Bridges the change feed to consumers of the active order list. Any
event on the orders table triggers a full re-aggregation, and the
refreshed list replaces whatever the consumer held before.

The subscription has an explicit lifecycle owned by its consumer:

    subscription = OrderListSubscription(feed, session_maker, on_orders)
    await subscription.start()
    ...
    await subscription.stop()
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tableside.schemas import OrderView
from tableside.services.orders import fetch_active_orders
from tableside.services.realtime import ORDERS_TABLE
from tableside.services.realtime.base import BaseChangeFeed, ChangeListener

logger = logging.getLogger(__name__)

OrdersCallback = Callable[[list[OrderView]], Awaitable[None]]


class OrderListSubscription:
    """
    Re-fetches the active order list on every orders change event.

    Attributes:
        feed: Change feed to listen on
        session_maker: Factory for the session used by each refresh
        callback: Awaited with each refreshed list
        refresh_count: Number of lists delivered so far
        initial_refresh: Deliver the current list from the subscription task
            as soon as it starts, ahead of any event-driven refresh
    """

    def __init__(
        self,
        feed: BaseChangeFeed,
        session_maker: async_sessionmaker[AsyncSession],
        callback: OrdersCallback,
        initial_refresh: bool = False,
    ):
        self.feed = feed
        self.session_maker = session_maker
        self.callback = callback
        self.initial_refresh = initial_refresh
        self.refresh_count = 0
        self._listener: Optional[ChangeListener] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Register on the feed and begin delivering refreshed lists."""
        if self.running:
            return
        self._listener = await self.feed.listen(ORDERS_TABLE)
        self._task = asyncio.create_task(self._run())
        logger.info(f"Order list subscription started ({self.feed.provider_name})")

    async def stop(self) -> None:
        """Stop delivery. In-flight refreshes are cancelled."""
        task, self._task = self._task, None
        listener, self._listener = self._listener, None

        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Order list subscription ended with an error: {e}")
        if listener is not None:
            await listener.close()
            logger.info("Order list subscription stopped")

    async def refresh(self) -> Optional[list[OrderView]]:
        """
        Run one aggregation and deliver it.

        Returns the delivered list, or None when the aggregation failed;
        the consumer then keeps its previous list.
        """
        try:
            async with self.session_maker() as session:
                orders = await fetch_active_orders(session)
        except Exception as e:
            logger.error(f"Failed to refresh active orders: {e}")
            return None

        await self.callback(orders)
        self.refresh_count += 1
        return orders

    async def _run(self) -> None:
        listener = self._listener
        if self.initial_refresh:
            await self.refresh()
        while True:
            event = await listener.get()
            logger.debug(
                f"Change on {event.table}#{event.record_id} ({event.event_type.value})"
            )
            await self.refresh()
