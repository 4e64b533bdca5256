"""Reward store: catalog reads and coin-debiting purchases.

A purchase debits available_coins with a conditional server-side decrement,
so the balance never goes negative and concurrent purchases cannot overspend.
lifetime_earned is never touched by spending.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.db.models import CoinLedger, Purchase, StoreItem

logger = logging.getLogger(__name__)


class StoreItemNotFoundError(LookupError):
    """Item does not exist or is no longer for sale."""


class InsufficientCoinsError(ValueError):
    """Available balance is lower than the item's cost."""


class OutOfStockError(ValueError):
    """Limited-stock item has sold out."""


async def list_items(db: AsyncSession, category: str | None = None) -> list[StoreItem]:
    """Active items, cheapest first."""
    stmt = select(StoreItem).where(StoreItem.is_active.is_(True))
    if category:
        stmt = stmt.where(StoreItem.category == category)
    result = await db.execute(stmt.order_by(StoreItem.cost_coins.asc(), StoreItem.slug))
    return list(result.scalars().all())


async def list_purchases(db: AsyncSession, user_id: uuid.UUID, limit: int = 50) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.user_id == user_id)
        .order_by(Purchase.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


def _redemption_code() -> str:
    return "-".join(secrets.token_hex(2).upper() for _ in range(4))


async def purchase_item(
    db: AsyncSession,
    user_id: uuid.UUID,
    item_id: uuid.UUID,
    now: datetime | None = None,
) -> Purchase:
    """Debit the item's cost and record the purchase in one transaction."""
    result = await db.execute(
        select(StoreItem).where(StoreItem.id == item_id, StoreItem.is_active.is_(True))
    )
    item = result.scalar_one_or_none()
    if item is None:
        msg = "Store item not found"
        raise StoreItemNotFoundError(msg)

    if now is None:
        now = datetime.now(timezone.utc)
    cost = item.cost_coins

    debited = await db.execute(
        update(CoinLedger)
        .where(CoinLedger.user_id == user_id, CoinLedger.available_coins >= cost)
        .values(available_coins=CoinLedger.available_coins - cost, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if debited.rowcount != 1:
        await db.rollback()
        msg = f"Purchase requires {cost} coins"
        raise InsufficientCoinsError(msg)

    if item.stock_quantity is not None:
        taken = await db.execute(
            update(StoreItem)
            .where(StoreItem.id == item_id, StoreItem.stock_quantity > 0)
            .values(stock_quantity=StoreItem.stock_quantity - 1)
            .execution_options(synchronize_session=False)
        )
        if taken.rowcount != 1:
            await db.rollback()
            msg = "Item is out of stock"
            raise OutOfStockError(msg)

    details: dict[str, object] = {
        "item_title": item.title,
        "category": item.category,
        "provider": item.provider,
        "metadata": item.item_metadata,
    }
    if item.category == "gift_card":
        details["redemption_code"] = _redemption_code()

    purchase = Purchase(
        user_id=user_id,
        store_item_id=item_id,
        coins_spent=cost,
        status="completed",
        purchase_details=details,
        created_at=now,
    )
    db.add(purchase)
    await db.commit()
    logger.info("User %s purchased %s for %d coins", user_id, item.slug, cost)
    return purchase
