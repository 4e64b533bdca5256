"""Reward store seed data: upserted on startup by slug."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.base import dialect_insert
from trippey.db.models import StoreItem

logger = logging.getLogger(__name__)

STORE_SEED_DATA: list[dict] = [
    {
        "slug": "chai_voucher",
        "title": "Chai on Us",
        "description": "A cup of chai at any partner stall.",
        "category": "experience",
        "cost_coins": 25,
        "provider": "Partner Stalls",
        "stock_quantity": None,
        "item_metadata": {"valid_days": 30},
    },
    {
        "slug": "rail_discount_10",
        "title": "10% Off a Train Booking",
        "description": "Discount code for one rail booking.",
        "category": "travel_discount",
        "cost_coins": 100,
        "provider": "RailTrip",
        "stock_quantity": None,
        "item_metadata": {"discount_percent": 10},
    },
    {
        "slug": "heritage_walk",
        "title": "Guided Heritage Walk",
        "description": "Two-hour old-city walk with a local guide.",
        "category": "experience",
        "cost_coins": 250,
        "provider": "Old City Walks",
        "stock_quantity": 20,
        "item_metadata": {"duration_hours": 2},
    },
    {
        "slug": "gift_card_500",
        "title": "Gift Card (500)",
        "description": "Redeemable at partner artisan shops.",
        "category": "gift_card",
        "cost_coins": 400,
        "provider": "Artisan Collective",
        "stock_quantity": 50,
        "item_metadata": {"face_value": 500},
    },
]


async def seed_store_items(db: AsyncSession) -> int:
    """Upsert the store catalog. Stock is only set on first insert."""
    seeded = 0
    for item_data in STORE_SEED_DATA:
        # Column is named "metadata", which DeclarativeBase reserves as an attribute
        values = {k: v for k, v in item_data.items() if k != "item_metadata"}
        values["metadata"] = item_data["item_metadata"]
        stmt = dialect_insert(db, StoreItem).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "title": stmt.excluded.title,
                "description": stmt.excluded.description,
                "category": stmt.excluded.category,
                "cost_coins": stmt.excluded.cost_coins,
                "provider": stmt.excluded.provider,
                "metadata": stmt.excluded["metadata"],
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d store items", seeded)
    return seeded
