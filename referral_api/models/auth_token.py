"""
Auth Token model

Single-use opaque tokens for email verification and password reset.
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Index

from referral_api.core.database import Base


class TokenKind(str, enum.Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class AuthToken(Base):
    """
    Tokens are:
    - One-time use (the row is deleted on consumption)
    - Time-limited (expires_at)
    - Not unique per account: several live tokens may coexist
    """
    __tablename__ = "user_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    token = Column(String(128), unique=True, nullable=False)
    type = Column(String(32), nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index('ix_user_tokens_token', 'token'),
        Index('ix_user_tokens_user_id', 'user_id'),
        Index('ix_user_tokens_expires', 'expires_at'),
    )

    def __repr__(self):
        return f"<AuthToken(id={self.id}, user_id={self.user_id!r}, type={self.type!r})>"
