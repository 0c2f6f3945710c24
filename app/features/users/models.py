"""
Account models: persisted users and the anonymous account.
"""
from datetime import datetime
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    Authenticated account, linked to an Appwrite user.

    Admins hold every global capability, including the group bypass.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def is_anonymous(self) -> bool:
        return False

    def has_permission(self, permission: str) -> bool:
        """Global (group independent) capability check."""
        return self.is_admin

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"


class AnonymousUser:
    """Account used for requests without credentials."""
    id = None
    is_admin = False

    def is_anonymous(self) -> bool:
        return True

    def has_permission(self, permission: str) -> bool:
        return False

    def __repr__(self) -> str:
        return "<AnonymousUser>"


Account = User | AnonymousUser
