# app/models/enums/po_payment_status.py
import enum


class POPaymentStatus(str, enum.Enum):
    unpaid = "unpaid"
    partially_paid = "partially_paid"
    fully_paid = "fully_paid"


class POPaymentType(str, enum.Enum):
    advance = "advance"
    regular = "regular"
    final = "final"
