from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.db import Base
from app.constants.roles import UNRANKED_HIERARCHY_LEVEL


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Tenant id={self.id} name={self.name}>"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    username = Column(String(150), unique=True, nullable=False, index=True)
    full_name = Column(String(200), nullable=True)
    is_owner = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    token_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    roles = relationship("Role", secondary="user_roles", lazy="selectin")

    def __repr__(self):
        return f"<User id={self.id} username={self.username} tenant_id={self.tenant_id}>"


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    slug = Column(String(50), nullable=False)
    name = Column(String(100), nullable=True)
    # lower = more authority
    hierarchy_level = Column(Integer, nullable=False, default=UNRANKED_HIERARCHY_LEVEL)

    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_role_tenant_slug"),)

    def __repr__(self):
        return f"<Role slug={self.slug} level={self.hierarchy_level}>"


class UserRole(Base):
    __tablename__ = "user_roles"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
