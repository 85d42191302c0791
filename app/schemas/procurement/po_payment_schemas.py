from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import date, datetime

from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus, POPaymentType


class POPaymentCreate(BaseModel):
    amount: Decimal
    payment_date: Optional[date] = None
    payment_type: POPaymentType = POPaymentType.regular
    payment_method: Optional[str] = Field(default=None, max_length=50)
    reference_number: Optional[str] = Field(default=None, max_length=100)
    bank_reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class POPaymentOut(BaseModel):
    id: int
    po_id: int
    amount: Decimal
    payment_date: date
    payment_type: POPaymentType
    payment_method: Optional[str]
    reference_number: Optional[str]
    bank_reference: Optional[str]
    notes: Optional[str]
    created_by: Optional[int]
    created_by_name: Optional[str]
    created_at: datetime


class POPaymentSummary(BaseModel):
    total_amount: Decimal
    total_paid: Decimal
    balance: Decimal
    payment_status: POPaymentStatus
    po_status: POStatus


class POPaymentRecordOut(BaseModel):
    payment: POPaymentOut
    summary: POPaymentSummary


class POPaymentListData(BaseModel):
    payments: List[POPaymentOut]
    summary: POPaymentSummary
