"""
Reference Data Readers

Tables, menu categories, menu items and modifiers. These rows are
static for the lifetime of a service and only read here.
"""

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.core.exceptions import TableNotFound
from tableside.models import MenuCategory, MenuItem, Modifier, Table


async def fetch_tables(db: AsyncSession) -> Sequence[Table]:
    """All tables, ordered by their display number."""
    result = await db.execute(select(Table).order_by(Table.table_number))
    return result.scalars().all()


async def fetch_table(db: AsyncSession, table_id: int) -> Table:
    table = await db.get(Table, table_id)
    if table is None:
        raise TableNotFound(table_id)
    return table


async def fetch_menu_categories(db: AsyncSession) -> Sequence[MenuCategory]:
    result = await db.execute(
        select(MenuCategory).order_by(MenuCategory.display_order, MenuCategory.id)
    )
    return result.scalars().all()


async def fetch_menu_items(
    db: AsyncSession,
    category_id: Optional[int] = None,
) -> Sequence[MenuItem]:
    """Menu items in browse order, optionally restricted to one category."""
    query = select(MenuItem)
    if category_id is not None:
        query = query.where(MenuItem.category_id == category_id)
    result = await db.execute(query.order_by(MenuItem.display_order, MenuItem.id))
    return result.scalars().all()


async def fetch_modifiers(db: AsyncSession) -> Sequence[Modifier]:
    result = await db.execute(
        select(Modifier).order_by(Modifier.category, Modifier.id)
    )
    return result.scalars().all()
