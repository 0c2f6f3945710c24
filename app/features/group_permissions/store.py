"""
Storage access for group permission override records.

Saving a record invalidates the cache tags of the record, its group and the
record list, so cached override maps derived from them are dropped.
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import CacheBackend
from app.features.groups.models import Group
from app.features.group_permissions.models import GroupPermission
from app.utils import get_logger


log = get_logger(__name__)


def group_tag(group_id: str) -> str:
    return f"group:{group_id}"


def group_permission_tag(group_permission_id: str) -> str:
    return f"group_permission:{group_permission_id}"


async def load_by_group(db: AsyncSession, group: Group) -> Optional[GroupPermission]:
    result = await db.execute(
        select(GroupPermission).where(GroupPermission.group_id == group.id)
    )
    return result.scalar_one_or_none()


async def load_multiple(db: AsyncSession) -> list[GroupPermission]:
    result = await db.execute(select(GroupPermission).order_by(GroupPermission.created_at, GroupPermission.id))
    return list(result.scalars().all())


async def save_group_permission(
    db: AsyncSession,
    cache: CacheBackend,
    group_permission: GroupPermission
) -> GroupPermission:
    """Persist an override record and purge cache entries built from it."""
    db.add(group_permission)
    await db.commit()
    await db.refresh(group_permission)

    await cache.invalidate_tags([
        group_tag(group_permission.group_id),
        group_permission_tag(group_permission.id),
    ])
    log.info("Saved group permission %s for group %s", group_permission.id, group_permission.group_id)

    return group_permission


async def invalidate_group(cache: CacheBackend, group_id: str) -> int:
    """Drop cached data derived from a group, e.g. after it changed or was deleted."""
    return await cache.invalidate_tags([group_tag(group_id)])
