from __future__ import annotations

from datetime import datetime
from typing import Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ItemStatus = Literal["pending", "partial", "delivered", "cancelled"]
RequisitionTargetStatus = Literal["in_progress", "completed", "cancelled"]


class ItemUpdateById(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: UUID
    delivered_qty: int | None = Field(default=None, alias="deliveredQty")
    status: ItemStatus | None = None


class ItemUpdateByProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    product_id: UUID = Field(alias="productId")
    delivered_qty: int | None = Field(default=None, alias="deliveredQty")
    status: ItemStatus | None = None


class RequisitionFulfillmentRequest(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "status": "in_progress",
                "assignToMe": True,
                "note": "Partial delivery, rest tomorrow",
                "items": [{"id": "6f1f0b52-8d3c-4f0e-9d0b-0d6a3d1f3c11", "deliveredQty": 4}],
            }
        },
    )

    status: RequisitionTargetStatus | None = None
    assign_to_me: bool = Field(default=False, alias="assignToMe")
    note: str | None = None
    items: list[Union[ItemUpdateById, ItemUpdateByProduct]] | None = None


class RequisitionItemUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    delivered_qty: int | None = Field(default=None, alias="deliveredQty")
    status: ItemStatus | None = None


class RequisitionItemResponse(BaseModel):
    id: str
    request_id: str
    product_id: str
    sku: str
    product_name: str
    unit: str
    requested_qty: int
    delivered_qty: int
    status: str
    created_at: datetime
    updated_at: datetime


class UserRef(BaseModel):
    id: str
    name: str


class RequisitionSummary(BaseModel):
    id: str
    status: str
    created_by_user_id: str
    assigned_to_user_id: str | None
    created_by: UserRef | None = None
    assigned_to: UserRef | None = None
    note: str | None
    created_at: datetime
    updated_at: datetime


class RequisitionResponse(RequisitionSummary):
    items: list[RequisitionItemResponse]


class RequisitionListMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class RequisitionListResponse(BaseModel):
    meta: RequisitionListMeta
    rows: list[RequisitionSummary]


class MovementResponse(BaseModel):
    id: str
    product_id: str
    qty: int
    type: str
    ref_type: str
    ref_id: str
    request_item_id: str | None
    cumulative_qty: int | None
    note: str | None
    created_by_user_id: str | None
    created_at: datetime


class MovementListResponse(BaseModel):
    rows: list[MovementResponse]
    total_qty: int
