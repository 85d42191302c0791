from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus


# ==============================
# ITEM SCHEMAS
# ==============================
class PurchaseOrderItemCreate(BaseModel):
    material_id: Optional[int] = None
    material_name: str = Field(min_length=1, max_length=200)
    unit_of_measure: Optional[str] = None
    quantity: Decimal = Field(gt=0, max_digits=12, decimal_places=3, description="Ordered quantity")
    unit_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2, description="Price per unit")


class PurchaseOrderItemOut(BaseModel):
    id: int
    material_id: Optional[int]
    material_name: str
    unit_of_measure: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    received_quantity: Decimal
    pending_quantity: Decimal


# ==============================
# PO INPUT SCHEMAS
# ==============================
class PurchaseOrderCreate(BaseModel):
    vendor_id: int
    order_date: Optional[date] = None
    expected_delivery: Optional[date] = None
    payment_terms: Optional[str] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    items: List[PurchaseOrderItemCreate]


class PurchaseOrderUpdate(BaseModel):
    vendor_id: Optional[int] = None
    expected_delivery: Optional[date] = None
    payment_terms: Optional[str] = None
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    items: Optional[List[PurchaseOrderItemCreate]] = None


class POStatusChange(BaseModel):
    status: str
    rejection_reason: Optional[str] = Field(default=None, max_length=1000)


# ==============================
# PO OUTPUT SCHEMAS
# ==============================
class PurchaseOrderOut(BaseModel):
    id: int
    tenant_id: int
    po_number: str
    vendor_id: int
    order_date: date
    expected_delivery: Optional[date]
    payment_terms: Optional[str]
    shipping_address: Optional[str]
    notes: Optional[str]

    total_amount: Decimal
    status: POStatus
    payment_status: POPaymentStatus
    version: int

    created_by: Optional[int]
    created_by_name: Optional[str]
    approved_by: Optional[int]
    rejection_reason: Optional[str]

    submitted_at: Optional[datetime]
    approved_at: Optional[datetime]
    rejected_at: Optional[datetime]
    sent_to_vendor_at: Optional[datetime]
    acknowledged_at: Optional[datetime]
    dispatched_at: Optional[datetime]
    fully_received_at: Optional[datetime]
    closed_at: Optional[datetime]
    cancelled_at: Optional[datetime]

    created_at: datetime
    updated_at: Optional[datetime]

    allowed_transitions: List[POStatus]
    items: List[PurchaseOrderItemOut]


class PurchaseOrderListItem(BaseModel):
    id: int
    po_number: str
    vendor_id: int
    order_date: date
    total_amount: Decimal
    status: POStatus
    payment_status: POPaymentStatus
    no_of_items: int
    created_at: datetime


class PurchaseOrderListData(BaseModel):
    total: int
    items: List[PurchaseOrderListItem]
