"""
FastAPI dependencies for group permission checks.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import CacheBackend, get_cache_backend
from app.core.database.engine import get_db
from app.features.groups.dependencies import get_group_by_id
from app.features.groups.models import Group
from app.features.users.dependencies import get_current_account
from app.features.users.models import Account
from app.features.group_permissions.resolver import GroupPermissionResolver
from app.utils import get_logger


log = get_logger(__name__)


async def get_permission_resolver(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[CacheBackend, Depends(get_cache_backend)]
) -> GroupPermissionResolver:
    """Resolver scoped to the current request."""
    return GroupPermissionResolver(db, cache)


def require_group_permission(permission: str):
    """
    FastAPI dependency to require a group permission on routes with a
    ``group_id`` path parameter.

    Usage:
        @router.post("/groups/{group_id}/posts")
        async def create_post(
            account: Account = Depends(require_group_permission("create post"))
        ):
            pass

    Raises:
        HTTPException: 403 if the account lacks the permission in the group
    """
    async def permission_dependency(
        group: Annotated[Group, Depends(get_group_by_id)],
        account: Annotated[Account, Depends(get_current_account)],
        resolver: Annotated[GroupPermissionResolver, Depends(get_permission_resolver)]
    ) -> Account:
        if not await resolver.has_permission(permission, group, account):
            log.info("Denied %r in group %s for %r", permission, group.id, account)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {permission}"
            )

        return account

    return permission_dependency
