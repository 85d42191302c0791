from decimal import Decimal

from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey, Numeric, Index, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, TenantMixin
from app.constants.grn import GRNStatus


class GoodsReceipt(Base, TimestampMixin, TenantMixin):
    """Immutable once written. Corrections are new receipts."""

    __tablename__ = "goods_receipts"

    id = Column(Integer, primary_key=True)
    grn_number = Column(String(30), nullable=False)
    po_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=GRNStatus.COMPLETED.value, index=True)
    received_date = Column(Date, nullable=False)
    received_by_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    delivery_note_number = Column(String(100), nullable=True)
    vehicle_number = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)

    items = relationship("GoodsReceiptItem", back_populates="goods_receipt", cascade="all, delete-orphan", lazy="selectin")
    received_by = relationship("User", lazy="joined")

    __table_args__ = (
        UniqueConstraint("tenant_id", "grn_number", name="uq_grn_tenant_number"),
        Index("ix_grn_po_status", "po_id", "status"),
    )

    def __repr__(self):
        return f"<GoodsReceipt {self.grn_number} po_id={self.po_id}>"


class GoodsReceiptItem(Base):
    __tablename__ = "goods_receipt_items"

    id = Column(Integer, primary_key=True)
    grn_id = Column(Integer, ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    po_item_id = Column(Integer, ForeignKey("purchase_order_items.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity_received = Column(Numeric(12, 3), nullable=False)
    quantity_accepted = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    quantity_rejected = Column(Numeric(12, 3), nullable=False, default=Decimal("0"))
    rejection_reason = Column(Text, nullable=True)
    storage_location = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    goods_receipt = relationship("GoodsReceipt", back_populates="items")

    __table_args__ = (
        CheckConstraint(
            "quantity_received >= 0 AND quantity_accepted >= 0 AND quantity_rejected >= 0",
            name="ck_grn_item_quantities_non_negative",
        ),
        CheckConstraint(
            "quantity_accepted + quantity_rejected <= quantity_received",
            name="ck_grn_item_accept_reject_within_received",
        ),
    )

    def __repr__(self):
        return f"<GoodsReceiptItem id={self.id} po_item_id={self.po_item_id} accepted={self.quantity_accepted}>"
