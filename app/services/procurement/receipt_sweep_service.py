import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.procurement.goods_receipt_models import GoodsReceipt
from app.constants.grn import GRNStatus
from app.core.exceptions import AppException
from app.services.procurement.goods_receipt_service import recompute_receipt_status
from app.services.procurement.po_transitions import RECEIVABLE_STATUSES

logger = logging.getLogger(__name__)


async def reconcile_open_receipts(db: AsyncSession) -> int:
    """
    Re-derive receipt status for every still-receiving PO that has goods
    receipts. Returns how many POs changed status.
    """
    rows = await db.execute(
        select(PurchaseOrder.tenant_id, PurchaseOrder.id, PurchaseOrder.status)
        .where(
            PurchaseOrder.status.in_(RECEIVABLE_STATUSES),
            select(GoodsReceipt.id)
            .where(
                GoodsReceipt.po_id == PurchaseOrder.id,
                GoodsReceipt.status == GRNStatus.COMPLETED.value,
            )
            .exists(),
        )
        .order_by(PurchaseOrder.id)
    )
    candidates = rows.all()

    if not candidates:
        return 0

    changed = 0
    for tenant_id, po_id, status in candidates:
        try:
            new_status = await recompute_receipt_status(db, tenant_id=tenant_id, po_id=po_id)
        except AppException as exc:
            await db.rollback()
            logger.warning(
                f"Receipt sweep skipped PO {po_id}: {exc.detail}",
                extra={"tenant_id": tenant_id, "po_id": po_id},
            )
            continue

        if new_status != status:
            changed += 1

    logger.info(
        f"Receipt sweep checked {len(candidates)} purchase orders, {changed} updated"
    )
    return changed
