# Users, tenants and roles
from app.models.users.user_models import Tenant, User, Role, UserRole
from app.models.support.activity_models import UserActivity

# Procurement
from app.models.procurement.purchase_order_models import PurchaseOrder, PurchaseOrderItem
from app.models.procurement.goods_receipt_models import GoodsReceipt, GoodsReceiptItem
from app.models.procurement.approval_models import ApprovalConfig, ApprovalHistory
from app.models.procurement.po_payment_models import POPayment
