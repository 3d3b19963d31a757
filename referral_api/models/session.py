"""
Server-side session model

One row per login. The cookie holds the raw session id; sid here is its
keyed digest. sess is the identity snapshot served to authenticated requests.
"""
from sqlalchemy import Column, String, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB

from referral_api.core.database import Base


class Session(Base):
    __tablename__ = "sessions"

    sid = Column(String, primary_key=True)
    sess = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    expire = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('ix_session_expire', 'expire'),
    )

    def __repr__(self):
        return f"<Session(sid='{self.sid[:8]}...', expire={self.expire})>"
