"""DeviceProfile model - one row per installation, keyed by device identity."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from ..database import Base


class DeviceProfile(Base):
    """Installation profile holding the current delivery token."""

    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, unique=True, nullable=False, index=True)  # device identity
    fcm_token = Column(String, nullable=True, index=True)
    device_type = Column(String, default="web")  # ios, android, web
    app_version = Column(String, nullable=True)
    last_active = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
