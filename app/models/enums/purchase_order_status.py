# app/models/enums/purchase_order_status.py
import enum


class POStatus(str, enum.Enum):
    draft = "draft"
    pending_approval = "pending_approval"
    approved = "approved"
    rejected = "rejected"
    sent_to_vendor = "sent_to_vendor"
    acknowledged = "acknowledged"
    dispatched = "dispatched"
    partially_received = "partially_received"   # system-managed
    fully_received = "fully_received"           # system-managed
    closed = "closed"
    cancelled = "cancelled"
