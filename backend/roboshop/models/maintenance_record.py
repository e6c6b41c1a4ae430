from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey
from datetime import datetime
from roboshop.core.database import Base


class MaintenanceRecord(Base):
    """One service performed on a machine; the latest one starts the current cycle"""
    __tablename__ = "maintenance_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    machine_id = Column(Integer, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True)

    performed_at = Column(DateTime, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<MaintenanceRecord(id={self.id}, machine_id={self.machine_id}, performed_at={self.performed_at})>"
