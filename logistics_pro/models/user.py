"""
User model

Identity table: phone/email/role/credential. Roles drive shipment
visibility (see services.visibility).
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime

from logistics_pro.core.database import Base


class UserRole(str, enum.Enum):
    """Principal roles"""
    CLIENT = "client"
    COMPANY = "company"
    DRIVER = "driver"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    phone = Column(String(20), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.CLIENT.value)
    email = Column(String(100), nullable=True)

    # Device token for push notifications
    fcm_token = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<User(id={self.id}, phone='{self.phone}', role='{self.role}')>"
