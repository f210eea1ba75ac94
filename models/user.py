from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, String, true, false
from sqlalchemy.orm import relationship


class User(BaseModel, Base):
    __tablename__ = "users"

    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    display_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true(), index=True)
    is_verified = Column(Boolean, nullable=False, default=False, server_default=false())

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    password_resets = relationship(
        "PasswordResetToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User id={self.id}>"
