from app.constants.activity_codes import ActivityCode


ACTIVITY_TEMPLATES = {
    # ---------------- PURCHASE ORDERS ----------------
    ActivityCode.CREATE_PURCHASE_ORDER:
        "{actor_name} created purchase order {target_name} for {amount}",

    ActivityCode.UPDATE_PURCHASE_ORDER:
        "{actor_name} updated purchase order {target_name}: {changes}",

    ActivityCode.TRANSITION_PURCHASE_ORDER:
        "{actor_name} moved purchase order {target_name} from {from_status} to {to_status}",

    ActivityCode.RECORD_PO_PAYMENT:
        "{actor_name} recorded payment of {amount} against purchase order {target_name}",

    # ---------------- GOODS RECEIPTS ----------------
    ActivityCode.CREATE_GOODS_RECEIPT:
        "{actor_name} recorded goods receipt {target_name} against purchase order {po_number}",

    # ---------------- SETTINGS ----------------
    ActivityCode.UPDATE_APPROVAL_CONFIG:
        "{actor_name} updated PO approval thresholds: {changes}",
}
