"""
RefreshToken model: one row per live session grant (one per device).
Fields:
- user_id (String(36)) - FK to users.id, cascades on delete
- token (the signed refresh token itself, unique)
- created_at, expires_at

A row is consumed by rotation: it is deleted in the same transaction that
inserts its replacement.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(512), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="refresh_tokens")

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id}>"
