"""
Group, group type, group role and membership models.

A group type is a template: it owns the roles available to its groups,
including the anonymous role (unauthenticated visitors) and the outsider
role (authenticated accounts that are not members). Outsider roles may also
be synchronized with global user roles.
"""
import enum
from typing import Optional
from sqlalchemy import String, ForeignKey, Table, Column, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid


# Roles assigned to a membership
group_membership_roles = Table(
    "group_membership_roles",
    Base.metadata,
    Column("membership_id", String(26), ForeignKey("group_memberships.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(128), ForeignKey("group_roles.id", ondelete="CASCADE"), primary_key=True),
)


class RoleScope(str, enum.Enum):
    """Which kind of account a group role applies to."""
    ANONYMOUS = "anonymous"
    OUTSIDER = "outsider"
    MEMBER = "member"


class GroupType(Base, TimestampMixin):
    """
    Group category, e.g. "team" or "project".

    Identified by a machine name; its anonymous and outsider roles are
    named "<type>-anonymous" and "<type>-outsider".
    """
    __tablename__ = "group_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)

    roles: Mapped[list["GroupRole"]] = relationship(
        "GroupRole",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def anonymous_role_id(self) -> str:
        return f"{self.id}-anonymous"

    @property
    def outsider_role_id(self) -> str:
        return f"{self.id}-outsider"

    def get_outsider_role(self) -> Optional["GroupRole"]:
        return next((role for role in self.roles if role.id == self.outsider_role_id), None)

    def __repr__(self) -> str:
        return f"<GroupType(id={self.id!r})>"


class GroupRole(Base, TimestampMixin):
    """
    Role within a group type. The role id is the key used in permission overrides.

    ``global_role`` names the global user role this role is synchronized
    with; None means the role is specific to the group type.
    """
    __tablename__ = "group_roles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    group_type_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("group_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    scope: Mapped[RoleScope] = mapped_column(
        SQLEnum(RoleScope),
        default=RoleScope.MEMBER,
        nullable=False,
    )
    global_role: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<GroupRole(id={self.id!r}, type={self.group_type_id!r}, scope={self.scope})>"


class Group(Base, TimestampMixin):
    """A group with its own membership."""
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    label: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    group_type_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("group_types.id"),
        nullable=False,
        index=True
    )

    group_type: Mapped["GroupType"] = relationship("GroupType", lazy="selectin")

    memberships: Mapped[list["GroupMembership"]] = relationship(
        "GroupMembership",
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def get_member(self, account) -> Optional["GroupMembership"]:
        """Membership of ``account`` in this group, if any."""
        if account is None or account.id is None:
            return None
        return next((m for m in self.memberships if m.user_id == account.id), None)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, label={self.label!r}, type={self.group_type_id!r})>"


class GroupMembership(Base, TimestampMixin):
    """A user's membership of a group and the roles it grants."""
    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("group_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    group_id: Mapped[str] = mapped_column(String(26), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    group: Mapped["Group"] = relationship("Group", back_populates="memberships")
    roles: Mapped[list["GroupRole"]] = relationship(
        "GroupRole",
        secondary=group_membership_roles,
        lazy="selectin"
    )

    def get_roles(self) -> dict[str, "GroupRole"]:
        """Assigned roles keyed by role id."""
        return {role.id: role for role in self.roles}

    def __repr__(self) -> str:
        return f"<GroupMembership(group_id={self.group_id}, user_id={self.user_id})>"
