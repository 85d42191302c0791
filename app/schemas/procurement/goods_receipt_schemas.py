from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from app.models.enums.purchase_order_status import POStatus


# ==============================
# INPUT
# ==============================
class GoodsReceiptLineCreate(BaseModel):
    # sign is checked by the receipt service so callers get NEGATIVE_QUANTITY;
    # max_digits matches the Numeric(12, 3) columns
    po_item_id: int
    quantity_received: Decimal = Field(max_digits=12)
    quantity_accepted: Decimal = Field(max_digits=12)
    quantity_rejected: Decimal = Field(default=Decimal("0"), max_digits=12)
    rejection_reason: Optional[str] = None
    storage_location: Optional[str] = None
    notes: Optional[str] = None


class GoodsReceiptCreate(BaseModel):
    po_id: int
    received_date: Optional[date] = None
    delivery_note_number: Optional[str] = Field(default=None, max_length=100)
    vehicle_number: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None
    lines: List[GoodsReceiptLineCreate]


# ==============================
# OUTPUT
# ==============================
class GoodsReceiptLineOut(BaseModel):
    id: int
    po_item_id: int
    quantity_received: Decimal
    quantity_accepted: Decimal
    quantity_rejected: Decimal
    rejection_reason: Optional[str]
    storage_location: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class GoodsReceiptOut(BaseModel):
    id: int
    tenant_id: int
    grn_number: str
    po_id: int
    status: str
    received_date: date
    received_by: Optional[int]
    received_by_name: Optional[str]
    delivery_note_number: Optional[str]
    vehicle_number: Optional[str]
    notes: Optional[str]
    created_at: datetime
    lines: List[GoodsReceiptLineOut]


class GoodsReceiptSubmitOut(BaseModel):
    grn: GoodsReceiptOut
    updated_po_status: POStatus


class GoodsReceiptListData(BaseModel):
    total: int
    items: List[GoodsReceiptOut]
