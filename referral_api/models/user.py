"""
Account model

Local accounts carry a bcrypt hash; federated accounts may have no password
and no username. Lockout fields back the brute force protection policy.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Index

from referral_api.core.database import Base


class Account(Base):
    """
    User account.

    Invariants:
    - username and email are each globally unique
    - failed_login_attempts returns to 0 on successful login and on password reset
    """
    __tablename__ = "users"

    # Opaque identifier, e.g. "user_1718000000000_9f2c4e1a7b3d5f60"
    id = Column(String, primary_key=True)

    username = Column(String, unique=True, nullable=True)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)

    provider = Column(String, default="local")
    provider_id = Column(String, nullable=True)

    email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Account lockout
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime(timezone=True), nullable=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index('ix_users_username', 'username'),
        Index('ix_users_email', 'email'),
    )

    def __repr__(self):
        return f"<Account(id={self.id!r}, username={self.username!r})>"

    @property
    def has_password(self) -> bool:
        return bool(self.hashed_password)
