from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, Enum, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base
from app.models.base.mixins import TimestampMixin, TenantMixin, AuditMixin
from app.models.enums.purchase_order_status import POStatus


class ApprovalConfig(Base, TimestampMixin, TenantMixin, AuditMixin):
    __tablename__ = "approval_configs"

    id = Column(Integer, primary_key=True)
    config_type = Column(String(50), nullable=False, default="purchase_order")
    level1_limit = Column(Numeric(14, 2), nullable=False)
    level2_limit = Column(Numeric(14, 2), nullable=False)
    level2_role = Column(String(50), nullable=False)
    level3_role = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "config_type", name="uq_approval_config_tenant_type"),
        CheckConstraint("level1_limit >= 0 AND level2_limit > level1_limit", name="ck_approval_config_limits"),
    )

    def __repr__(self):
        return f"<ApprovalConfig tenant_id={self.tenant_id} l1={self.level1_limit} l2={self.level2_limit}>"


class ApprovalHistory(Base, TenantMixin):
    """Append-only PO transition log. Never updated, never deleted."""

    __tablename__ = "po_approval_history"

    id = Column(Integer, primary_key=True)
    po_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    from_status = Column(Enum(POStatus), nullable=False)
    to_status = Column(Enum(POStatus), nullable=False)
    # null for system-driven transitions without an actor
    performed_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    comments = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    performed_by = relationship("User", lazy="joined")

    __table_args__ = (Index("ix_po_history_po_created", "po_id", "created_at"),)

    def __repr__(self):
        return f"<ApprovalHistory po_id={self.po_id} {self.from_status}->{self.to_status}>"
