"""
Reference Data Seeding

Loads a sample floor plan, menu and modifier catalogue into an empty
database. Runs at startup when SEED_REFERENCE_DATA is enabled and is a
no-op once any table exists.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tableside.models import MenuCategory, MenuItem, Modifier, Table

logger = logging.getLogger(__name__)

# (table_number, capacity)
TABLES = [
    (1, 2), (2, 2), (3, 4), (4, 4), (5, 4), (6, 6), (7, 6), (8, 8),
]

# Category name -> [(name, description, price)]
MENU = {
    "Starters": [
        ("Pork Gyoza", "Pan-fried dumplings, six pieces", 7.50),
        ("Edamame", "Steamed soybeans with sea salt", 4.50),
        ("Karaage", "Japanese fried chicken with yuzu mayo", 8.99),
    ],
    "Ramen": [
        ("Tonkotsu Ramen", "Pork bone broth, chashu, soft egg, scallions", 15.99),
        ("Shoyu Ramen", "Soy chicken broth, bamboo shoots, nori", 14.50),
        ("Miso Ramen", "Red miso broth, corn, butter, bean sprouts", 14.99),
        ("Vegan Tantanmen", "Sesame broth, spiced tofu, bok choy", 15.50),
    ],
    "Rice Bowls": [
        ("Chashu Don", "Braised pork belly over rice", 12.99),
        ("Katsu Curry", "Breaded cutlet with Japanese curry", 13.99),
    ],
    "Drinks": [
        ("Green Tea", "Hot sencha", 2.99),
        ("Ramune", "Japanese marble soda", 3.50),
        ("Sapporo Draft", "Draft lager, 16oz", 6.50),
    ],
}

# (category, name, price_adjustment)
MODIFIERS = [
    ("Broth Type", "Rich", 0.0),
    ("Broth Type", "Light", 0.0),
    ("Spice Level", "Mild", 0.0),
    ("Spice Level", "Medium", 0.0),
    ("Spice Level", "Hot", 0.0),
    ("Spice Level", "Inferno", 1.00),
    ("Extras", "Extra Noodles", 2.50),
    ("Extras", "Extra Chashu", 3.50),
    ("Extras", "Soft-Boiled Egg", 1.50),
]


async def seed_reference_data(db: AsyncSession) -> bool:
    """
    Insert the sample catalogue if the database has no tables yet.

    Returns:
        True if data was inserted, False if it was already present
    """
    existing = await db.execute(select(func.count(Table.id)))
    if (existing.scalar() or 0) > 0:
        logger.info("Reference data already present, skipping seed")
        return False

    db.add_all(Table(table_number=n, capacity=c) for n, c in TABLES)

    for category_order, (category_name, items) in enumerate(MENU.items(), start=1):
        category = MenuCategory(name=category_name, display_order=category_order)
        category.items = [
            MenuItem(
                name=name,
                description=description,
                price=price,
                display_order=item_order,
            )
            for item_order, (name, description, price) in enumerate(items, start=1)
        ]
        db.add(category)

    db.add_all(
        Modifier(category=category, name=name, price_adjustment=adjustment)
        for category, name, adjustment in MODIFIERS
    )

    await db.commit()
    logger.info(
        f"Seeded {len(TABLES)} tables, {len(MENU)} categories, "
        f"{sum(len(items) for items in MENU.values())} menu items, "
        f"{len(MODIFIERS)} modifiers"
    )
    return True
