"""Notification models - visible notifications and their delivery log."""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey

from ..database import Base


def _new_uuid() -> str:
    return str(uuid.uuid4())


class Notification(Base):
    """A visible notification, kept for analytics joins."""

    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=_new_uuid)
    type = Column(String, nullable=False)  # signal, achievement, announcement, alert
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    data = Column(JSON, nullable=True)
    target_user = Column(String, nullable=True)
    status = Column(String, default="pending")  # pending, sent, failed
    view_count = Column(Integer, nullable=False, default=0)
    click_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)


class NotificationLog(Base):
    """One row per delivery batch."""

    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(String, ForeignKey("notifications.id"), nullable=False, index=True)
    status = Column(String, nullable=False)  # sent, failed
    result = Column(JSON, nullable=True)
    error_message = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
