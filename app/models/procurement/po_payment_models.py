from sqlalchemy import Column, Integer, String, Text, Date, ForeignKey, Numeric, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, TenantMixin, AuditMixin
from app.models.enums.po_payment_status import POPaymentType


class POPayment(Base, TimestampMixin, TenantMixin, AuditMixin):
    __tablename__ = "po_payments"

    id = Column(Integer, primary_key=True)
    po_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_type = Column(Enum(POPaymentType), nullable=False, default=POPaymentType.regular)
    payment_method = Column(String(50), nullable=True)
    reference_number = Column(String(100), nullable=True)
    bank_reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    purchase_order = relationship("PurchaseOrder", lazy="noload")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_po_payment_amount_positive"),)

    def __repr__(self):
        return f"<POPayment id={self.id} po_id={self.po_id} amount={self.amount}>"
