from sqlalchemy import Column, String, Integer, JSON, DateTime, Numeric
from datetime import datetime
from enum import Enum
from roboshop.core.database import Base


class MaintenanceType(str, Enum):
    """How a machine's maintenance cycle is counted"""
    BY_CALENDAR_DAYS = "BY_CALENDAR_DAYS"
    BY_RENTAL_COUNT = "BY_RENTAL_COUNT"


class Machine(Base):
    __tablename__ = "machines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)

    # Rental pricing
    price_per_day = Column(Numeric(10, 2), nullable=False, default=0)
    deposit = Column(Numeric(10, 2), nullable=False, default=0)

    # Maintenance cycle
    maintenance_type = Column(String, nullable=False)  # BY_CALENDAR_DAYS, BY_RENTAL_COUNT
    interval_days = Column(Integer, nullable=True)
    interval_rental_count = Column(Integer, nullable=True)
    last_serviced_at = Column(DateTime, nullable=True)
    # Derived from the cycle fields above, rewritten on every mutation
    next_maintenance_at = Column(DateTime, nullable=True, index=True)

    # Notification addresses
    guests = Column(JSON, default=list)

    # Maintenance calendar event
    event_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Machine(id={self.id}, name={self.name})>"
