from decimal import Decimal

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey, Numeric, Enum, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, TenantMixin, AuditMixin
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus


class PurchaseOrder(Base, TimestampMixin, TenantMixin, AuditMixin):
    __tablename__ = "purchase_orders"

    id = Column(Integer, primary_key=True)
    po_number = Column(String(30), nullable=False)
    vendor_id = Column(Integer, nullable=False, index=True)
    order_date = Column(Date, nullable=False)
    expected_delivery = Column(Date, nullable=True)
    payment_terms = Column(String(200), nullable=True)
    shipping_address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    total_amount = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    status = Column(Enum(POStatus), nullable=False, default=POStatus.draft, index=True)
    payment_status = Column(Enum(POPaymentStatus), nullable=False, default=POPaymentStatus.unpaid, index=True)
    version = Column(Integer, nullable=False, default=1)

    # per-transition stamps
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    sent_to_vendor_at = Column(DateTime(timezone=True), nullable=True)
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    fully_received_at = Column(DateTime(timezone=True), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderItem.id",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "po_number", name="uq_po_tenant_number"),
        Index("ix_po_tenant_status", "tenant_id", "status"),
        CheckConstraint("total_amount >= 0", name="ck_po_total_non_negative"),
    )

    def __repr__(self):
        return f"<PurchaseOrder {self.po_number} status={self.status}>"


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id = Column(Integer, primary_key=True)
    po_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(Integer, nullable=True, index=True)
    material_name = Column(String(200), nullable=False)
    unit_of_measure = Column(String(30), nullable=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)
    # recomputed from all GRNs, never incremented
    received_quantity = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))

    purchase_order = relationship("PurchaseOrder", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_po_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_po_item_price_non_negative"),
        CheckConstraint("received_quantity >= 0", name="ck_po_item_received_non_negative"),
    )

    def __repr__(self):
        return f"<PurchaseOrderItem id={self.id} qty={self.quantity} received={self.received_quantity}>"
