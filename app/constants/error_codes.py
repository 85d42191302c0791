# app/constants/error_codes.py

from enum import Enum


class ErrorCode(str, Enum):
    # ---------------- GENERIC ----------------
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    NO_CHANGES_DETECTED = "NO_CHANGES_DETECTED"

    # ---------------- PO LIFECYCLE ----------------
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    PO_NOT_EDITABLE = "PO_NOT_EDITABLE"
    INVALID_PO_TOTAL = "INVALID_PO_TOTAL"

    # ---------------- APPROVAL ----------------
    FORBIDDEN_ROLE = "FORBIDDEN_ROLE"
    SELF_APPROVAL_FORBIDDEN = "SELF_APPROVAL_FORBIDDEN"
    INSUFFICIENT_APPROVAL_LEVEL = "INSUFFICIENT_APPROVAL_LEVEL"
    INVALID_APPROVAL_CONFIG = "INVALID_APPROVAL_CONFIG"

    # ---------------- GOODS RECEIPT ----------------
    INVALID_PO_STATE_FOR_RECEIPT = "INVALID_PO_STATE_FOR_RECEIPT"
    OVER_RECEIPT = "OVER_RECEIPT"
    NEGATIVE_QUANTITY = "NEGATIVE_QUANTITY"
    EMPTY_LINES = "EMPTY_LINES"
    INVALID_PO_ITEM = "INVALID_PO_ITEM"
    RECEIPT_QUANTITY_MISMATCH = "RECEIPT_QUANTITY_MISMATCH"
    REJECTION_REASON_REQUIRED = "REJECTION_REASON_REQUIRED"
    RECEIPT_PERSISTENCE_FAILED = "RECEIPT_PERSISTENCE_FAILED"
    DATA_INTEGRITY_ALERT = "DATA_INTEGRITY_ALERT"

    # ---------------- PAYMENTS ----------------
    INVALID_PAYMENT_AMOUNT = "INVALID_PAYMENT_AMOUNT"
    OVERPAYMENT = "OVERPAYMENT"
    PAYMENT_NOT_ALLOWED = "PAYMENT_NOT_ALLOWED"
