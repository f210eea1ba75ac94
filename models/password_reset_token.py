"""
PasswordResetToken model: one-time password reset grants.
Only the SHA-256 digest of the token mailed to the user is stored.
At most one row per user has is_valid = True.
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, true
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base


class PasswordResetToken(BaseModel, Base):
    __tablename__ = "password_resets"
    __table_args__ = (
        Index("ix_password_resets_user_valid_expires", "user_id", "is_valid", "expires_at"),
    )

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_digest = Column(String(64), nullable=False)
    is_valid = Column(Boolean, nullable=False, default=True, server_default=true())
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="password_resets")

    def __repr__(self):
        return f"<PasswordResetToken id={self.id} user_id={self.user_id} valid={self.is_valid}>"
