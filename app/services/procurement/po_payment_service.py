import logging
from datetime import date
from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models.procurement.po_payment_models import POPayment
from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus
from app.schemas.procurement.po_payment_schemas import (
    POPaymentCreate,
    POPaymentOut,
    POPaymentSummary,
    POPaymentRecordOut,
    POPaymentListData,
)
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.core.event_bus import POEventType, PODomainEvent, get_event_bus
from app.core.exceptions import AppException
from app.services.users.role_directory import get_tenant_user
from app.services.procurement.purchase_order_service import get_purchase_order_row
from app.services.procurement.po_state_machine import execute_transition, transition_event
from app.services.procurement.po_transitions import validate_transition
from app.utils.activity_helpers import emit_activity
from app.utils.decimal_utils import money

logger = logging.getLogger(__name__)

# payments are refused until the order is approved, and after it is finished
PAYMENT_BLOCKED_STATUSES = frozenset(
    {
        POStatus.draft,
        POStatus.pending_approval,
        POStatus.rejected,
        POStatus.cancelled,
        POStatus.closed,
    }
)


def derive_payment_status(total: Decimal, paid: Decimal) -> POPaymentStatus:
    if paid >= total:
        return POPaymentStatus.fully_paid
    if paid > 0:
        return POPaymentStatus.partially_paid
    return POPaymentStatus.unpaid


def map_payment(p: POPayment) -> POPaymentOut:
    return POPaymentOut(
        id=p.id,
        po_id=p.po_id,
        amount=p.amount,
        payment_date=p.payment_date,
        payment_type=p.payment_type,
        payment_method=p.payment_method,
        reference_number=p.reference_number,
        bank_reference=p.bank_reference,
        notes=p.notes,
        created_by=p.created_by_id,
        created_by_name=p.created_by_username,
        created_at=p.created_at,
    )


async def _total_paid(db: AsyncSession, tenant_id: int, po_id: int) -> Decimal:
    rows = await db.execute(
        select(POPayment.amount).where(
            POPayment.tenant_id == tenant_id,
            POPayment.po_id == po_id,
        )
    )
    return money(sum((Decimal(a) for a in rows.scalars().all()), Decimal("0")))


def _summary(po: PurchaseOrder, paid: Decimal) -> POPaymentSummary:
    total = money(po.total_amount)
    return POPaymentSummary(
        total_amount=total,
        total_paid=paid,
        balance=max(total - paid, Decimal("0.00")),
        payment_status=po.payment_status,
        po_status=po.status,
    )


# =====================================================
# RECORD
# =====================================================
async def record_po_payment(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
    actor_id: int,
    payload: POPaymentCreate,
) -> POPaymentRecordOut:

    amount = money(payload.amount)
    if amount <= 0:
        raise AppException(
            400,
            "Payment amount must be greater than zero",
            ErrorCode.INVALID_PAYMENT_AMOUNT,
            {"amount": amount},
        )

    po = await get_purchase_order_row(db, tenant_id, po_id, for_update=True)
    actor = await get_tenant_user(db, tenant_id, actor_id)

    if po.status in PAYMENT_BLOCKED_STATUSES:
        raise AppException(
            400,
            f'Cannot record payment for a purchase order in "{po.status.value}" status',
            ErrorCode.PAYMENT_NOT_ALLOWED,
            {"status": po.status.value},
        )

    paid = await _total_paid(db, tenant_id, po.id)
    balance = money(po.total_amount) - paid

    if amount > balance:
        raise AppException(
            400,
            f"Payment exceeds outstanding balance of {balance}",
            ErrorCode.OVERPAYMENT,
            {"balance": balance, "amount": amount},
        )

    payment = POPayment(
        tenant_id=tenant_id,
        po_id=po.id,
        amount=amount,
        payment_date=payload.payment_date or date.today(),
        payment_type=payload.payment_type,
        payment_method=payload.payment_method,
        reference_number=payload.reference_number,
        bank_reference=payload.bank_reference,
        notes=payload.notes,
        created_by_id=actor.id,
    )
    db.add(payment)

    paid += amount
    po.payment_status = derive_payment_status(money(po.total_amount), paid)
    po.updated_by_id = actor.id
    await db.flush()
    await db.refresh(po)

    closing = None
    if (
        po.status == POStatus.fully_received
        and po.payment_status == POPaymentStatus.fully_paid
    ):
        validate_transition(po.status, POStatus.closed, po.payment_status)
        closing = await execute_transition(db, po, POStatus.closed, actor_id=actor.id)

    await emit_activity(
        db=db,
        tenant_id=tenant_id,
        user_id=actor.id,
        username=actor.username,
        code=ActivityCode.RECORD_PO_PAYMENT,
        amount=amount,
        target_name=po.po_number,
    )

    await db.commit()
    await db.refresh(payment)

    logger.info(
        f"Payment of {amount} recorded against {po.po_number}",
        extra={"tenant_id": tenant_id, "po_id": po.id, "payment_status": po.payment_status.value},
    )

    events = [
        PODomainEvent(
            type=POEventType.PAYMENT_RECORDED,
            tenant_id=tenant_id,
            po_id=po.id,
            actor_id=actor.id,
            data={
                "payment_id": payment.id,
                "amount": str(amount),
                "total_paid": str(paid),
                "payment_status": po.payment_status.value,
            },
        )
    ]
    if closing is not None:
        events.append(transition_event(po, closing))
    await get_event_bus().publish_all(events)

    return POPaymentRecordOut(payment=map_payment(payment), summary=_summary(po, paid))


# =====================================================
# LIST
# =====================================================
async def list_po_payments(
    db: AsyncSession,
    *,
    tenant_id: int,
    po_id: int,
) -> POPaymentListData:
    po = await get_purchase_order_row(db, tenant_id, po_id)

    result = await db.execute(
        select(POPayment)
        .where(
            POPayment.tenant_id == tenant_id,
            POPayment.po_id == po.id,
        )
        .order_by(POPayment.payment_date.asc(), POPayment.id.asc())
    )
    payments: List[POPayment] = result.unique().scalars().all()
    paid = money(sum((Decimal(p.amount) for p in payments), Decimal("0")))

    return POPaymentListData(
        payments=[map_payment(p) for p in payments],
        summary=_summary(po, paid),
    )
