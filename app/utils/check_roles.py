from fastapi import Depends, HTTPException, status
from app.utils.get_user import get_current_user
from app.models.users.user_models import User
from app.constants.roles import OWNER


def user_role_slugs(user: User) -> set[str]:
    slugs = {r.slug.lower() for r in user.roles}
    if user.is_owner:
        slugs.add(OWNER)
    return slugs


def require_role(roles):
    wanted = {r.lower() for r in roles}

    async def role_checker(user: User = Depends(get_current_user)):
        if not user_role_slugs(user) & wanted:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permission denied"
            )
        return user
    return role_checker
