"""Notification event models - view/click events and the clicked-users set."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint

from ..database import Base


class NotificationEvent(Base):
    """A view or click of a notification by one user."""

    __tablename__ = "notification_events"
    __table_args__ = (
        UniqueConstraint("user_id", "notification_id", "event_type", name="uq_notification_event"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    notification_id = Column(String, nullable=False, index=True)
    event_type = Column(String, nullable=False)  # viewed, clicked
    event_time = Column(DateTime, default=datetime.utcnow)


class ClickedUser(Base):
    """Membership of a user in a notification's clicked-users set."""

    __tablename__ = "notification_clicked_users"
    __table_args__ = (
        UniqueConstraint("notification_id", "user_id", name="uq_clicked_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)
