"""
Group permission resolution.

Decides whether an account holds a permission inside a group by checking the
group's custom permission overrides for the roles that apply to the account:

- anonymous accounts: the group type's anonymous role
- members: the roles assigned to their membership
- everyone else: the group type's outsider roles

Override maps are cached twice: per resolver instance, and in the shared
cache store under ``custom_group_permissions:<group id>``.
"""
import enum
from typing import Iterable, Mapping, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.cache import CACHE_PERMANENT, CacheBackend
from app.features.groups.models import Group, GroupMembership, GroupRole
from app.features.groups.store import load_synchronized_by_group_types
from app.features.group_permissions.models import GroupPermission
from app.features.group_permissions.store import (
    group_permission_tag,
    group_tag,
    load_by_group,
    load_multiple,
)
from app.utils import get_logger


log = get_logger(__name__)


class AccountAudience(str, enum.Enum):
    """How an account relates to a group."""
    ANONYMOUS = "anonymous"
    OUTSIDER = "outsider"
    MEMBER = "member"


def classify_account(group: Group, account) -> tuple[AccountAudience, Optional[GroupMembership]]:
    """
    Work out which role set applies to ``account`` in ``group``.

    A missing account counts as anonymous.
    """
    if account is None or account.is_anonymous():
        return AccountAudience.ANONYMOUS, None

    membership = group.get_member(account)
    if membership is not None:
        return AccountAudience.MEMBER, membership

    return AccountAudience.OUTSIDER, None


def custom_permissions_cid(group_id: str) -> str:
    return f"custom_group_permissions:{group_id}"


class GroupPermissionResolver:
    """
    Checks group permissions for accounts.

    Create one per request; the in-process caches live as long as the
    instance and are never invalidated.
    """

    def __init__(self, db: AsyncSession, cache: CacheBackend):
        self.db = db
        self.cache = cache
        # group id -> {role id: [permission, ...]}
        self.custom_permissions: dict[str, dict[str, list[str]]] = {}
        # group id -> override record (None when the group has none)
        self.group_permissions: dict[str, Optional[GroupPermission]] = {}
        # group type id -> {role id: role}
        self.outsider_roles: dict[str, dict[str, GroupRole]] = {}

    def set_custom_permission(self, group_permission: GroupPermission) -> None:
        """Prime the in-process cache with a record already loaded by the caller."""
        group_id = group_permission.group_id
        self.group_permissions[group_id] = group_permission
        self.custom_permissions[group_id] = group_permission.get_permissions()

    async def get_custom_permissions(self, group: Group) -> dict[str, list[str]]:
        """
        Custom permissions of a group, keyed by role id.

        An empty dict means the group has no overrides, not an error.
        """
        group_id = group.id
        if group_id in self.custom_permissions:
            return self.custom_permissions[group_id]

        cid = custom_permissions_cid(group_id)
        cached = await self.cache.get(cid)
        if cached is not None:
            log.debug("Custom permissions cache hit for group %s", group_id)
            custom_permissions = cached.data
        else:
            group_permission = await load_by_group(self.db, group)
            self.group_permissions[group_id] = group_permission
            tags = [group_tag(group_id)]
            if group_permission is not None:
                tags.append(group_permission_tag(group_permission.id))
                custom_permissions = group_permission.get_permissions()
            else:
                custom_permissions = {}

            await self.cache.set(cid, custom_permissions, CACHE_PERMANENT, tags)
            log.debug("Cached custom permissions for group %s with tags %s", group_id, tags)

        self.custom_permissions[group_id] = custom_permissions
        return custom_permissions

    async def get_group_permission(self, group: Group) -> Optional[GroupPermission]:
        """Override record of a group, or None."""
        if group.id not in self.group_permissions:
            self.group_permissions[group.id] = await load_by_group(self.db, group)
        return self.group_permissions[group.id]

    async def has_permission(self, permission: str, group: Group, account=None) -> bool:
        """
        Check a permission for an account within a group.

        Accounts holding the bypass capability pass every check. A False
        result only means the custom overrides do not grant the permission.
        """
        if account is not None and account.has_permission(config.BYPASS_PERMISSION):
            return True

        audience, _ = classify_account(group, account)
        if audience is AccountAudience.ANONYMOUS:
            allowed = await self.check_anonymous_role(permission, group)
        elif audience is AccountAudience.MEMBER:
            allowed = await self.check_group_roles(permission, group, account)
        else:
            allowed = await self.check_outsider_roles(permission, group)

        log.debug(
            "Permission %r in group %s for %s account: %s",
            permission, group.id, audience.value, "granted" if allowed else "denied"
        )
        return allowed

    async def check_anonymous_role(self, permission: str, group: Group) -> bool:
        custom_permissions = await self.get_custom_permissions(group)
        if not custom_permissions:
            return False

        role_id = group.group_type.anonymous_role_id
        return self.check_roles(permission, custom_permissions, [role_id])

    async def check_outsider_roles(self, permission: str, group: Group) -> bool:
        custom_permissions = await self.get_custom_permissions(group)
        if not custom_permissions:
            return False

        outsider_roles = await self.get_outsider_roles(group)
        return self.check_roles(permission, custom_permissions, outsider_roles)

    async def check_group_roles(self, permission: str, group: Group, account) -> bool:
        custom_permissions = await self.get_custom_permissions(group)
        if not custom_permissions:
            return False

        membership = group.get_member(account)
        if membership is None:
            return False

        return self.check_roles(permission, custom_permissions, membership.get_roles())

    @staticmethod
    def check_roles(
        permission: str,
        custom_permissions: Mapping[str, Iterable[str]],
        roles: Iterable[str]
    ) -> bool:
        """
        True if any of ``roles`` has an override entry containing ``permission``.

        ``roles`` may be a mapping keyed by role id.
        """
        for role_id in roles:
            role_permissions = custom_permissions.get(role_id)
            if role_permissions and permission in role_permissions:
                return True
        return False

    async def get_outsider_roles(self, group: Group) -> dict[str, GroupRole]:
        """
        Roles that apply to authenticated non-members of the group.

        The synchronized outsider roles of the group type plus its designated
        outsider role, cached per group type.
        """
        group_type = group.group_type
        if group_type.id not in self.outsider_roles:
            outsider_roles = await load_synchronized_by_group_types(self.db, [group_type.id])
            outsider_role = group_type.get_outsider_role()
            if outsider_role is not None:
                outsider_roles[outsider_role.id] = outsider_role
            else:
                log.warning("Group type %s has no outsider role %s", group_type.id, group_type.outsider_role_id)

            self.outsider_roles[group_type.id] = outsider_roles

        return self.outsider_roles[group_type.id]

    async def get_all(self) -> list[GroupPermission]:
        """Every override record in storage."""
        return await load_multiple(self.db)
