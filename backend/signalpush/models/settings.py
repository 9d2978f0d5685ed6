"""Settings model - key-value store for installation state."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from ..database import Base


class Setting(Base):
    """Settings stored as key-value pairs."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Key holding the JSON-encoded background sync configuration
SYNC_CONFIG_KEY = "background_sync_config"
