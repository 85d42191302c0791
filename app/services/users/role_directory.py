from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.models.users.user_models import User
from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.services.procurement.approval_authorization import ActorProfile, build_actor_profile


async def get_tenant_user(
    db: AsyncSession,
    tenant_id: int,
    user_id: int,
) -> User:
    result = await db.execute(
        select(User)
        .options(selectinload(User.roles))
        .where(
            User.id == user_id,
            User.tenant_id == tenant_id,
        )
    )
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise AppException(
            403,
            "User is not an active member of this tenant",
            ErrorCode.PERMISSION_DENIED,
            {"actor_id": user_id},
        )

    return user


def profile_for_user(user: User) -> ActorProfile:
    return build_actor_profile(
        user.id,
        [(r.slug, r.hierarchy_level) for r in user.roles if r.tenant_id == user.tenant_id],
        is_owner=user.is_owner,
    )


async def get_actor_profile(
    db: AsyncSession,
    tenant_id: int,
    actor_id: int,
) -> ActorProfile:
    user = await get_tenant_user(db, tenant_id, actor_id)
    return profile_for_user(user)
