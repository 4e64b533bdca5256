"""Reward store endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trippey.auth.dependencies import get_current_user_id
from trippey.database import get_session
from trippey.dependencies import get_redis_dep
from trippey.rewards.coin_service import get_ledger, publish_coins_update
from trippey.store.schemas import (
    PurchaseListResponse,
    PurchaseResponse,
    PurchaseResultResponse,
    StoreItemListResponse,
    StoreItemResponse,
)
from trippey.store.service import (
    InsufficientCoinsError,
    OutOfStockError,
    StoreItemNotFoundError,
    list_items,
    list_purchases,
    purchase_item,
)

router = APIRouter(prefix="/api/v1", tags=["Store"])


@router.get("/store/items", response_model=StoreItemListResponse)
async def store_items(
    category: str | None = Query(default=None, max_length=32),
    _user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    items = await list_items(db, category=category)
    return StoreItemListResponse(items=[StoreItemResponse.model_validate(i) for i in items])


@router.post("/store/items/{item_id}/purchase", response_model=PurchaseResultResponse, status_code=201)
async def purchase(
    item_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    try:
        record = await purchase_item(db, user_id, item_id)
    except StoreItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InsufficientCoinsError as e:
        raise HTTPException(status_code=402, detail=str(e)) from e
    except OutOfStockError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e

    ledger = await get_ledger(db, user_id)
    await publish_coins_update(redis, user_id, ledger, "purchase")
    return PurchaseResultResponse(
        purchase=PurchaseResponse.model_validate(record),
        available_coins=ledger.available_coins if ledger else 0,
    )


@router.get("/users/me/purchases", response_model=PurchaseListResponse)
async def my_purchases(
    limit: int = Query(default=50, ge=1, le=200),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    purchases = await list_purchases(db, user_id, limit=limit)
    return PurchaseListResponse(purchases=[PurchaseResponse.model_validate(p) for p in purchases])
