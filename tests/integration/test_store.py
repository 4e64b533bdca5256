"""Reward store purchases against the coin ledger."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select, update

from tests.conftest import auth_headers, quest_by_slug
from trippey.db.models import CoinLedger, StoreItem
from trippey.rewards.coin_service import award_quest_coins, quest_award_key
from trippey.store.service import InsufficientCoinsError, OutOfStockError, purchase_item


async def _item(db, slug) -> StoreItem:
    return (await db.execute(select(StoreItem).where(StoreItem.slug == slug))).scalar_one()


async def _fund(db, user_id, coins):
    quest = await quest_by_slug(db, "market_haul")
    await award_quest_coins(db, user_id, quest.id, coins, 0, quest_award_key(user_id, quest.id))
    await db.commit()


async def _balances(db, user_id):
    return (await db.execute(
        select(CoinLedger.available_coins, CoinLedger.lifetime_earned).where(CoinLedger.user_id == user_id)
    )).one()


class TestPurchaseService:
    @pytest.mark.asyncio
    async def test_purchase_debits_available_only(self, seeded_db, user_id):
        await _fund(seeded_db, user_id, 120)
        item = await _item(seeded_db, "rail_discount_10")

        purchase = await purchase_item(seeded_db, user_id, item.id)

        assert purchase.coins_spent == 100
        assert purchase.purchase_details["item_title"] == item.title
        balances = await _balances(seeded_db, user_id)
        assert (balances.available_coins, balances.lifetime_earned) == (20, 120)

    @pytest.mark.asyncio
    async def test_insufficient_coins(self, seeded_db, user_id):
        await _fund(seeded_db, user_id, 10)
        item_id = (await _item(seeded_db, "chai_voucher")).id
        with pytest.raises(InsufficientCoinsError):
            await purchase_item(seeded_db, user_id, item_id)
        assert (await _balances(seeded_db, user_id)).available_coins == 10

    @pytest.mark.asyncio
    async def test_no_ledger_row_is_insufficient(self, seeded_db, user_id):
        item_id = (await _item(seeded_db, "chai_voucher")).id
        with pytest.raises(InsufficientCoinsError):
            await purchase_item(seeded_db, user_id, item_id)

    @pytest.mark.asyncio
    async def test_out_of_stock_rolls_back_debit(self, seeded_db, user_id):
        await _fund(seeded_db, user_id, 500)
        item_id = (await _item(seeded_db, "heritage_walk")).id
        await seeded_db.execute(update(StoreItem).where(StoreItem.id == item_id).values(stock_quantity=0))
        await seeded_db.commit()

        with pytest.raises(OutOfStockError):
            await purchase_item(seeded_db, user_id, item_id)
        assert (await _balances(seeded_db, user_id)).available_coins == 500

    @pytest.mark.asyncio
    async def test_stock_is_decremented(self, seeded_db, user_id):
        await _fund(seeded_db, user_id, 500)
        item_id = (await _item(seeded_db, "heritage_walk")).id
        await purchase_item(seeded_db, user_id, item_id)
        stock = (await seeded_db.execute(
            select(StoreItem.stock_quantity).where(StoreItem.id == item_id)
        )).scalar_one()
        assert stock == 19

    @pytest.mark.asyncio
    async def test_gift_card_gets_redemption_code(self, seeded_db, user_id):
        await _fund(seeded_db, user_id, 400)
        item_id = (await _item(seeded_db, "gift_card_500")).id
        purchase = await purchase_item(seeded_db, user_id, item_id)
        assert len(purchase.purchase_details["redemption_code"]) == 19


class TestStoreApi:
    @pytest.mark.asyncio
    async def test_items_cheapest_first(self, client, user_id):
        response = await client.get("/api/v1/store/items", headers=auth_headers(user_id))
        costs = [i["cost_coins"] for i in response.json()["items"]]
        assert costs == sorted(costs)
        assert response.json()["items"][0]["metadata"] == {"valid_days": 30}

    @pytest.mark.asyncio
    async def test_purchase_flow(self, client, seeded_db, user_id):
        await _fund(seeded_db, user_id, 30)
        item_id = (await _item(seeded_db, "chai_voucher")).id
        headers = auth_headers(user_id)

        response = await client.post(f"/api/v1/store/items/{item_id}/purchase", headers=headers)
        assert response.status_code == 201
        assert response.json()["available_coins"] == 5

        broke = await client.post(f"/api/v1/store/items/{item_id}/purchase", headers=headers)
        assert broke.status_code == 402

        history = await client.get("/api/v1/users/me/purchases", headers=headers)
        assert len(history.json()["purchases"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_item_is_404(self, client, user_id):
        response = await client.post(
            f"/api/v1/store/items/{uuid.uuid4()}/purchase", headers=auth_headers(user_id)
        )
        assert response.status_code == 404
