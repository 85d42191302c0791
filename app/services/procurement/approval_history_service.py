from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.procurement.approval_models import ApprovalHistory
from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.enums.purchase_order_status import POStatus
from app.schemas.procurement.approval_schemas import ApprovalHistoryOut, ApprovalHistoryListData
from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException


def history_action(from_status: POStatus, to_status: POStatus) -> str:
    if to_status == POStatus.pending_approval:
        return "submitted"
    if to_status == POStatus.draft and from_status == POStatus.approved:
        return "returned_to_draft"
    return to_status.value


async def append_history_entry(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
    from_status: POStatus,
    to_status: POStatus,
    performed_by_id: Optional[int],
    comments: Optional[str] = None,
) -> ApprovalHistory:
    entry = ApprovalHistory(
        tenant_id=tenant_id,
        po_id=po_id,
        action=history_action(from_status, to_status),
        from_status=from_status,
        to_status=to_status,
        performed_by_id=performed_by_id,
        comments=comments,
    )
    db.add(entry)
    await db.flush()
    # server-side created_at and the joined actor
    await db.refresh(entry)
    return entry


def map_history_entry(entry: ApprovalHistory) -> ApprovalHistoryOut:
    return ApprovalHistoryOut(
        id=entry.id,
        po_id=entry.po_id,
        action=entry.action,
        from_status=entry.from_status,
        to_status=entry.to_status,
        performed_by=entry.performed_by_id,
        performed_by_name=entry.performed_by.username if entry.performed_by else None,
        comments=entry.comments,
        created_at=entry.created_at,
    )


async def list_approval_history(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
) -> ApprovalHistoryListData:
    exists = await db.scalar(
        select(PurchaseOrder.id).where(
            PurchaseOrder.id == po_id,
            PurchaseOrder.tenant_id == tenant_id,
        )
    )
    if not exists:
        raise AppException(404, "Purchase order not found", ErrorCode.NOT_FOUND, {"po_id": po_id})

    rows = await db.execute(
        select(ApprovalHistory)
        .where(
            ApprovalHistory.po_id == po_id,
            ApprovalHistory.tenant_id == tenant_id,
        )
        .order_by(ApprovalHistory.created_at.asc(), ApprovalHistory.id.asc())
    )
    entries = rows.scalars().all()

    return ApprovalHistoryListData(
        total=len(entries),
        items=[map_history_entry(e) for e in entries],
    )
