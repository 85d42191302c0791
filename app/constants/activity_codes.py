# app/constants/activity_codes.py

from enum import Enum


class ActivityCode(str, Enum):
    # ---------------- PURCHASE ORDERS ----------------
    CREATE_PURCHASE_ORDER = "CREATE_PURCHASE_ORDER"
    UPDATE_PURCHASE_ORDER = "UPDATE_PURCHASE_ORDER"
    TRANSITION_PURCHASE_ORDER = "TRANSITION_PURCHASE_ORDER"
    RECORD_PO_PAYMENT = "RECORD_PO_PAYMENT"

    # ---------------- GOODS RECEIPTS ----------------
    CREATE_GOODS_RECEIPT = "CREATE_GOODS_RECEIPT"

    # ---------------- SETTINGS ----------------
    UPDATE_APPROVAL_CONFIG = "UPDATE_APPROVAL_CONFIG"
