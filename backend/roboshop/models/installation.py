from sqlalchemy import Column, String, Integer, JSON, DateTime
from datetime import datetime
from roboshop.core.database import Base


class InstallationAppointment(Base):
    """Installation slot attached to a robot purchase order"""
    __tablename__ = "installation_appointments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_reference = Column(String, nullable=True)

    client_first_name = Column(String, nullable=False)
    client_last_name = Column(String, nullable=False)
    client_phone = Column(String, nullable=True)
    client_address = Column(String, nullable=True)
    robot_name = Column(String, nullable=False)

    # No event exists until a date is set
    installation_date = Column(DateTime, nullable=True)

    guests = Column(JSON, default=list)
    event_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<InstallationAppointment(id={self.id}, robot={self.robot_name})>"
