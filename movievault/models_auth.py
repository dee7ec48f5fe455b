# movievault/models_auth.py
from __future__ import annotations

from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, func


# IMPORTANT: this Base is imported by movievault.db_models so all tables share one MetaData
Base = declarative_base()

ROLE_ADMIN = "admin"
ROLE_USER = "user"


class AuthUser(Base):
    """
    Login identity. The catalog is administered by a single `admin` user;
    everybody else gets the generic `user` role.
    """
    __tablename__ = "auth_users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    username = Column(String(64), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default=ROLE_USER, server_default=ROLE_USER)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("username", name="uq_auth_users_username"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


__all__ = ["Base", "AuthUser", "ROLE_ADMIN", "ROLE_USER"]
