"""SilentNotificationLog model - audit log of silent handler executions."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, Boolean

from ..database import Base


class SilentNotificationLog(Base):
    """One row per silent handler invocation, success or failure."""

    __tablename__ = "silent_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    payload = Column(JSON, nullable=True)
    execution_time_ms = Column(Integer, default=0)
    success = Column(Boolean, nullable=False)
    result = Column(JSON, nullable=True)
    error_message = Column(String, nullable=True)
    platform = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
