from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from app.models.enums.purchase_order_status import POStatus
from app.schemas.procurement.purchase_order_schemas import PurchaseOrderOut


# ==============================
# HISTORY
# ==============================
class ApprovalHistoryOut(BaseModel):
    id: int
    po_id: int
    action: str
    from_status: POStatus
    to_status: POStatus
    performed_by: Optional[int]
    performed_by_name: Optional[str]
    comments: Optional[str]
    created_at: datetime


class POTransitionOut(BaseModel):
    purchase_order: PurchaseOrderOut
    history_entry: ApprovalHistoryOut


# ==============================
# THRESHOLD CONFIG
# ==============================
class ApprovalConfigUpsert(BaseModel):
    level1_limit: Decimal = Field(ge=0)
    level2_limit: Decimal = Field(gt=0)
    level2_role: Optional[str] = Field(default=None, min_length=1, max_length=50)
    level3_role: Optional[str] = Field(default=None, min_length=1, max_length=50)


class ApprovalConfigOut(BaseModel):
    id: int
    tenant_id: int
    level1_limit: Decimal
    level2_limit: Decimal
    level2_role: str
    level3_role: str
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ApprovalHistoryListData(BaseModel):
    total: int
    items: List[ApprovalHistoryOut]
