"""
Group-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.groups.models import Group
from app.features.groups.store import load_group


async def get_group_by_id(
    group_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Group:
    """
    Get group by ID or raise 404.

    Raises:
        HTTPException: 404 if group not found
    """
    group = await load_group(db, group_id)

    if group is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Group not found"
        )

    return group
