"""
Read access to groups and group roles.
"""
from typing import Iterable, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.groups.models import Group, GroupRole, RoleScope


async def load_group(db: AsyncSession, group_id: str) -> Optional[Group]:
    """Load a group with its type, type roles and memberships."""
    result = await db.execute(select(Group).where(Group.id == group_id))
    return result.scalar_one_or_none()


async def load_synchronized_by_group_types(
    db: AsyncSession,
    group_type_ids: Iterable[str]
) -> dict[str, GroupRole]:
    """
    Outsider roles of the given group types that mirror a global user role.

    Returns:
        Roles keyed by role id
    """
    stmt = (
        select(GroupRole)
        .where(
            GroupRole.group_type_id.in_(list(group_type_ids)),
            GroupRole.scope == RoleScope.OUTSIDER,
            GroupRole.global_role.is_not(None),
        )
        .order_by(GroupRole.id)
    )
    result = await db.execute(stmt)
    return {role.id: role for role in result.scalars().all()}
