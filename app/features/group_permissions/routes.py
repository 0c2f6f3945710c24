"""
Group permission API routes (read-only).
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Query

from app.features.groups.dependencies import get_group_by_id
from app.features.groups.models import Group
from app.features.users.dependencies import get_current_account, get_current_admin_user
from app.features.users.models import Account, User
from app.features.group_permissions.dependencies import get_permission_resolver, require_group_permission
from app.features.group_permissions.resolver import GroupPermissionResolver
from app.features.group_permissions.schemas import (
    CustomPermissionsResponse,
    GroupPermissionResponse,
    PermissionCheckResponse,
)


router = APIRouter()

VIEW_GROUP_PERMISSIONS = "view group permissions"


@router.get("/groups/{group_id}/permissions/check", response_model=PermissionCheckResponse)
async def check_group_permission(
    group: Annotated[Group, Depends(get_group_by_id)],
    account: Annotated[Account, Depends(get_current_account)],
    resolver: Annotated[GroupPermissionResolver, Depends(get_permission_resolver)],
    permission: str = Query(..., min_length=1, description="Permission to check"),
):
    """Check whether the current account holds a permission in the group."""
    allowed = await resolver.has_permission(permission, group, account)
    return PermissionCheckResponse(group_id=group.id, permission=permission, allowed=allowed)


@router.get("/groups/{group_id}/permissions", response_model=CustomPermissionsResponse)
async def get_group_custom_permissions(
    group: Annotated[Group, Depends(get_group_by_id)],
    resolver: Annotated[GroupPermissionResolver, Depends(get_permission_resolver)],
    _account: Annotated[Account, Depends(require_group_permission(VIEW_GROUP_PERMISSIONS))],
):
    """Custom permission overrides of a group."""
    permissions = await resolver.get_custom_permissions(group)
    return CustomPermissionsResponse(group_id=group.id, permissions=permissions)


@router.get("/group-permissions", response_model=List[GroupPermissionResponse])
async def list_group_permissions(
    resolver: Annotated[GroupPermissionResolver, Depends(get_permission_resolver)],
    _admin: Annotated[User, Depends(get_current_admin_user)],
):
    """List every group permission override record (admin only)."""
    return await resolver.get_all()
