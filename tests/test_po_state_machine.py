from decimal import Decimal

import pytest
from sqlalchemy import select, update, func

from app.constants.error_codes import ErrorCode
from app.core.event_bus import POEventType, get_event_bus
from app.core.exceptions import AppException
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus
from app.models.procurement.approval_models import ApprovalConfig, ApprovalHistory
from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.support.activity_models import UserActivity
from app.services.procurement.approval_history_service import list_approval_history
from app.services.procurement.po_state_machine import execute_transition, transition_status
from app.services.procurement.purchase_order_service import get_purchase_order_row

from tests.conftest import run_scenario, seed_po, seed_tenant, seed_user


async def history_count(db, po_id):
    return await db.scalar(
        select(func.count()).select_from(ApprovalHistory).where(ApprovalHistory.po_id == po_id)
    )


async def move(db, tenant, actor, po_id, target, **kwargs):
    return await transition_status(
        db,
        tenant_id=tenant.id,
        po_id=po_id,
        actor_id=actor.id,
        target_status=target,
        **kwargs,
    )


def test_happy_path_through_approval():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer", ["purchaser"])
        manager = await seed_user(db, tenant, "manager", ["manager"])
        po = await seed_po(db, tenant, buyer)

        submitted = await move(db, tenant, buyer, po.id, "pending_approval")
        assert submitted.purchase_order.status == POStatus.pending_approval
        assert submitted.purchase_order.submitted_at is not None
        assert submitted.history_entry.action == "submitted"

        approved = await move(db, tenant, manager, po.id, POStatus.approved)
        assert approved.purchase_order.status == POStatus.approved
        assert approved.purchase_order.approved_by == manager.id
        assert approved.history_entry.performed_by == manager.id
        assert approved.history_entry.from_status == POStatus.pending_approval

        sent = await move(db, tenant, buyer, po.id, "sent_to_vendor")
        assert sent.purchase_order.allowed_transitions == [
            POStatus.acknowledged,
            POStatus.dispatched,
            POStatus.cancelled,
        ]

        assert await history_count(db, po.id) == 3
        assert sent.purchase_order.version == 4

        events = [e.type for e in get_event_bus().get_history(tenant_id=tenant.id)]
        assert events == [POEventType.SUBMITTED, POEventType.APPROVED, POEventType.SENT_TO_VENDOR]

        activity = await db.scalar(select(func.count()).select_from(UserActivity))
        # one for create + three transitions
        assert activity == 4

    run_scenario(scenario)


def test_rejection_stores_reason_and_seals_po():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer")
        approver = await seed_user(db, tenant, "approver", ["po_approver"])
        po = await seed_po(db, tenant, buyer, status=POStatus.pending_approval)

        result = await move(db, tenant, approver, po.id, "rejected", rejection_reason="Vendor not vetted")
        assert result.purchase_order.rejection_reason == "Vendor not vetted"
        assert result.history_entry.comments == "Vendor not vetted"

        for target in ("draft", "pending_approval", "approved", "cancelled", "closed"):
            with pytest.raises(AppException) as exc:
                await move(db, tenant, approver, po.id, target)
            assert exc.value.error_code == ErrorCode.INVALID_TRANSITION
            assert exc.value.details["allowed"] == []

        assert await history_count(db, po.id) == 1

    run_scenario(scenario)


def test_return_to_draft_clears_approver():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer")
        manager = await seed_user(db, tenant, "manager", ["manager"])
        po = await seed_po(db, tenant, buyer, status=POStatus.pending_approval)

        await move(db, tenant, manager, po.id, "approved")
        result = await move(db, tenant, buyer, po.id, "draft")

        assert result.purchase_order.status == POStatus.draft
        assert result.purchase_order.approved_by is None
        assert result.purchase_order.approved_at is None
        assert result.history_entry.action == "returned_to_draft"

    run_scenario(scenario)


def test_self_approval_is_refused_even_for_managers():
    async def scenario(db):
        tenant = await seed_tenant(db)
        manager = await seed_user(db, tenant, "manager", ["manager", "director"])
        po = await seed_po(db, tenant, manager, status=POStatus.pending_approval)

        with pytest.raises(AppException) as exc:
            await move(db, tenant, manager, po.id, "approved")
        assert exc.value.error_code == ErrorCode.SELF_APPROVAL_FORBIDDEN

        row = await get_purchase_order_row(db, tenant.id, po.id)
        assert row.status == POStatus.pending_approval
        assert await history_count(db, po.id) == 0

    run_scenario(scenario)


def test_owner_may_approve_own_po():
    async def scenario(db):
        tenant = await seed_tenant(db)
        owner = await seed_user(db, tenant, "owner", is_owner=True)
        po = await seed_po(db, tenant, owner, status=POStatus.pending_approval)

        result = await move(db, tenant, owner, po.id, "approved")
        assert result.purchase_order.status == POStatus.approved

    run_scenario(scenario)


def test_threshold_scenario_requires_manager():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer")
        sales = await seed_user(db, tenant, "sales", ["sales_rep"])
        manager = await seed_user(db, tenant, "manager", ["manager"])

        db.add(
            ApprovalConfig(
                tenant_id=tenant.id,
                level1_limit=Decimal("50000"),
                level2_limit=Decimal("100000"),
                level2_role="manager",
                level3_role="director",
            )
        )
        await db.commit()

        # 750 x 100 = 75,000
        po = await seed_po(
            db, tenant, buyer, [Decimal("750")], Decimal("100"), status=POStatus.pending_approval
        )
        assert po.total_amount == Decimal("75000")

        with pytest.raises(AppException) as exc:
            await move(db, tenant, sales, po.id, "approved")
        assert exc.value.error_code == ErrorCode.INSUFFICIENT_APPROVAL_LEVEL
        assert exc.value.details["required_role"] == "manager"

        result = await move(db, tenant, manager, po.id, "approved")
        assert result.purchase_order.status == POStatus.approved

    run_scenario(scenario)


@pytest.mark.parametrize(
    "status,payment",
    [
        (POStatus.fully_received, POPaymentStatus.unpaid),
        (POStatus.fully_received, POPaymentStatus.partially_paid),
        (POStatus.partially_received, POPaymentStatus.fully_paid),
        (POStatus.dispatched, POPaymentStatus.partially_paid),
    ],
)
def test_close_requires_full_receipt_and_payment(status, payment):
    async def scenario(db):
        tenant = await seed_tenant(db)
        admin = await seed_user(db, tenant, "admin", ["admin"])
        po = await seed_po(db, tenant, admin, status=status, payment_status=payment)

        with pytest.raises(AppException) as exc:
            await move(db, tenant, admin, po.id, "closed")
        assert exc.value.error_code == ErrorCode.PRECONDITION_FAILED

    run_scenario(scenario)


def test_close_when_received_and_paid():
    async def scenario(db):
        tenant = await seed_tenant(db)
        admin = await seed_user(db, tenant, "admin", ["admin"])
        po = await seed_po(
            db,
            tenant,
            admin,
            status=POStatus.fully_received,
            payment_status=POPaymentStatus.fully_paid,
        )

        result = await move(db, tenant, admin, po.id, "closed")
        assert result.purchase_order.status == POStatus.closed
        assert result.purchase_order.closed_at is not None
        assert result.purchase_order.allowed_transitions == []

    run_scenario(scenario)


def test_humans_cannot_set_receipt_statuses():
    async def scenario(db):
        tenant = await seed_tenant(db)
        admin = await seed_user(db, tenant, "admin", ["admin"])
        po = await seed_po(db, tenant, admin, status=POStatus.dispatched)

        for target in ("partially_received", "fully_received"):
            with pytest.raises(AppException) as exc:
                await move(db, tenant, admin, po.id, target)
            assert exc.value.error_code == ErrorCode.INVALID_TRANSITION
            assert exc.value.details["allowed"] == ["cancelled"]

    run_scenario(scenario)


def test_stale_write_surfaces_as_conflict():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer")
        approver = await seed_user(db, tenant, "approver", ["po_approver"])
        po = await seed_po(db, tenant, buyer, status=POStatus.pending_approval)

        row = await get_purchase_order_row(db, tenant.id, po.id, for_update=True)

        # another request approves first
        await db.execute(
            update(PurchaseOrder)
            .where(PurchaseOrder.id == po.id)
            .values(status=POStatus.approved, version=PurchaseOrder.version + 1)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(AppException) as exc:
            await execute_transition(db, row, POStatus.rejected, actor_id=approver.id)

        assert exc.value.status_code == 409
        assert exc.value.error_code == ErrorCode.INVALID_TRANSITION
        assert exc.value.details["current_status"] == "approved"
        assert await history_count(db, po.id) == 0

    run_scenario(scenario)


def test_missing_po_and_other_tenant_are_not_found():
    async def scenario(db):
        tenant = await seed_tenant(db)
        other = await seed_tenant(db, "Other Co")
        admin = await seed_user(db, tenant, "admin", ["admin"])
        outsider = await seed_user(db, other, "outsider", ["admin"])
        po = await seed_po(db, tenant, admin)

        with pytest.raises(AppException) as exc:
            await move(db, tenant, admin, 999, "pending_approval")
        assert exc.value.error_code == ErrorCode.NOT_FOUND

        with pytest.raises(AppException) as exc:
            await move(db, other, outsider, po.id, "pending_approval")
        assert exc.value.error_code == ErrorCode.NOT_FOUND

    run_scenario(scenario)


def test_history_is_chronological():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer")
        manager = await seed_user(db, tenant, "manager", ["manager"])
        po = await seed_po(db, tenant, buyer)

        await move(db, tenant, buyer, po.id, "pending_approval")
        await move(db, tenant, manager, po.id, "approved")
        await move(db, tenant, buyer, po.id, "cancelled")

        history = await list_approval_history(db, tenant_id=tenant.id, po_id=po.id)
        assert history.total == 3
        assert [h.to_status for h in history.items] == [
            POStatus.pending_approval,
            POStatus.approved,
            POStatus.cancelled,
        ]
        assert history.items[1].performed_by_name == "manager"

    run_scenario(scenario)


def test_failing_event_handler_does_not_break_transition():
    async def scenario(db):
        tenant = await seed_tenant(db)
        buyer = await seed_user(db, tenant, "buyer")
        po = await seed_po(db, tenant, buyer)

        async def broken(event):
            raise RuntimeError("mail server down")

        get_event_bus().subscribe(POEventType.SUBMITTED, broken)

        result = await move(db, tenant, buyer, po.id, "pending_approval")
        assert result.purchase_order.status == POStatus.pending_approval

    run_scenario(scenario)
