from sqlalchemy import Column, String, Integer, DateTime
from datetime import datetime
from roboshop.core.database import Base


class ConfigEntry(Base):
    """Shop-wide settings edited from the back office (e.g. shipping price)"""
    __tablename__ = "config_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, unique=True, nullable=False)
    value = Column(String, nullable=False)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ConfigEntry(key={self.key}, value={self.value})>"
