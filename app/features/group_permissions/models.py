"""
Per-group custom permission override record.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, JSON
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class GroupPermission(Base, TimestampMixin):
    """
    Custom permissions of one group, keyed by group role id.

    Example:
        {"team-member": ["view", "comment"], "team-outsider": ["view"]}
    """
    __tablename__ = "group_permissions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # At most one override record per group
    group_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("groups.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True
    )

    permissions: Mapped[Dict[str, Any]] = mapped_column(
        MutableDict.as_mutable(JSON),
        default=dict,
        nullable=False
    )

    def get_permissions(self) -> dict[str, list[str]]:
        """Plain copy of the override map, safe to cache and serialize."""
        return {role_id: list(perms or []) for role_id, perms in (self.permissions or {}).items()}

    def __repr__(self) -> str:
        return f"<GroupPermission(id={self.id}, group_id={self.group_id})>"
