from __future__ import annotations

import enum

from ..extensions import db
from shopkeep.time_utils import to_utc_z


class Role(str, enum.Enum):
    """
    Account roles.

    Callers ask a role what it is allowed to do (can_administer) instead of
    comparing role names.
    """
    ADMIN = "admin"
    USER = "user"

    @property
    def can_administer(self) -> bool:
        return self is Role.ADMIN

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        """Resolve a role name; raises ValueError for unknown names."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError("role must be a string")
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(r.value for r in cls)
            raise ValueError(f"Unknown role '{value}'. Allowed: {allowed}")


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Sales and expenses reference their creator through user_id.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(64), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(
        db.Enum(
            Role,
            name="user_role",
            native_enum=False,
            length=16,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
        default=Role.USER,
    )

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role is not None and Role.parse(self.role).can_administer

    def to_summary(self) -> dict:
        """Creator identity embedded in sales and expenses."""
        return {"id": self.id, "username": self.username}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": Role.parse(self.role).value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"
