from datetime import timedelta
import asyncio
import os

from app.models.users.user_models import Tenant, User
from app.core.db import AsyncSessionLocal
from app.core.security import create_access_token


async def create_owner():
    async with AsyncSessionLocal() as session:
        tenant = Tenant(name=os.getenv("TENANT_NAME", "Default Tenant"))
        session.add(tenant)
        await session.flush()

        owner = User(
            tenant_id=tenant.id,
            username=os.getenv("OWNER_USERNAME", "owner"),
            is_owner=True,
            is_active=True,
        )
        session.add(owner)
        await session.commit()

        token = create_access_token(
            owner.username,
            owner.token_version,
            tenant.id,
            expires_delta=timedelta(days=1),
        )
        print(f"Tenant {tenant.id} and owner '{owner.username}' created")
        print(f"Access token: {token}")

asyncio.run(create_owner())
