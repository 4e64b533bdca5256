"""Pydantic models for the reward store."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StoreItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    slug: str
    title: str
    description: str
    category: str
    cost_coins: int
    provider: str | None = None
    image_url: str | None = None
    stock_quantity: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="item_metadata")


class StoreItemListResponse(BaseModel):
    items: list[StoreItemResponse]


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_item_id: uuid.UUID
    coins_spent: int
    status: str
    purchase_details: dict[str, Any] = {}
    created_at: datetime


class PurchaseResultResponse(BaseModel):
    purchase: PurchaseResponse
    available_coins: int


class PurchaseListResponse(BaseModel):
    purchases: list[PurchaseResponse]
