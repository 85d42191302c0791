# app/routers/__init__.py

from .procurement.purchase_order_router import router as purchase_order_router
from .procurement.goods_receipt_router import router as goods_receipt_router
from .procurement.approval_config_router import router as approval_config_router


__all__ = [
"purchase_order_router",
"goods_receipt_router",
"approval_config_router",
]
