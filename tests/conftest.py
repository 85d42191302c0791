import os

os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DB_TYPE", "sqlite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_ACCESS_SECRET_KEY", "test-secret-key")
os.environ.setdefault("RECEIPT_SWEEP_ENABLED", "false")

import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from sqlalchemy import event, select, update
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import Base, enable_sqlite_foreign_keys
from app.core.event_bus import EventBus
from app.models.users.user_models import Tenant, User, Role, UserRole
from app.models.procurement.purchase_order_models import PurchaseOrder
from app.models.enums.purchase_order_status import POStatus
from app.models.enums.po_payment_status import POPaymentStatus
from app.schemas.procurement.purchase_order_schemas import (
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
)
from app.services.procurement.purchase_order_service import create_purchase_order

ROLE_LEVELS = {
    "owner": 0,
    "admin": 1,
    "director": 2,
    "manager": 3,
    "po_approver": 4,
}


@asynccontextmanager
async def database():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield session_factory
    finally:
        await engine.dispose()


def run_scenario(scenario):
    """Run `scenario(session)` against a fresh in-memory database."""

    async def _run():
        async with database() as session_factory:
            async with session_factory() as db:
                await scenario(db)

    asyncio.run(_run())


@pytest.fixture(autouse=True)
def fresh_event_bus():
    EventBus._instance = None
    yield
    EventBus._instance = None


# ---------------------------------------------------------------------------
# seed helpers
# ---------------------------------------------------------------------------
async def seed_tenant(db: AsyncSession, name: str = "Acme Interiors") -> Tenant:
    tenant = Tenant(name=name)
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    return tenant


async def seed_user(
    db: AsyncSession,
    tenant: Tenant,
    username: str,
    roles=(),
    *,
    is_owner: bool = False,
    is_active: bool = True,
) -> User:
    user = User(
        tenant_id=tenant.id,
        username=username,
        is_owner=is_owner,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()

    for slug in roles:
        role = await db.scalar(
            select(Role).where(Role.tenant_id == tenant.id, Role.slug == slug)
        )
        if role is None:
            role = Role(
                tenant_id=tenant.id,
                slug=slug,
                name=slug.replace("_", " ").title(),
                hierarchy_level=ROLE_LEVELS.get(slug, 999),
            )
            db.add(role)
            await db.flush()
        db.add(UserRole(user_id=user.id, role_id=role.id))

    await db.commit()
    await db.refresh(user, attribute_names=["roles"])
    return user


async def seed_po(
    db: AsyncSession,
    tenant: Tenant,
    creator: User,
    quantities=(Decimal("100"),),
    unit_price=Decimal("10"),
    *,
    status: POStatus = POStatus.draft,
    payment_status: POPaymentStatus = POPaymentStatus.unpaid,
):
    """Create a PO through the service, then force it into the wanted state."""
    po = await create_purchase_order(
        db,
        tenant_id=tenant.id,
        actor_id=creator.id,
        payload=PurchaseOrderCreate(
            vendor_id=1,
            items=[
                PurchaseOrderItemCreate(
                    material_name=f"Material {i + 1}",
                    unit_of_measure="pcs",
                    quantity=Decimal(q),
                    unit_price=Decimal(unit_price),
                )
                for i, q in enumerate(quantities)
            ],
        ),
    )

    if status != POStatus.draft or payment_status != POPaymentStatus.unpaid:
        await db.execute(
            update(PurchaseOrder)
            .where(PurchaseOrder.id == po.id)
            .values(status=status, payment_status=payment_status)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        # drop the cached row so services read the forced state
        db.expunge(await db.get(PurchaseOrder, po.id))

    return po
