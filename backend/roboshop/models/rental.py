from sqlalchemy import Column, String, Integer, JSON, DateTime, Boolean, ForeignKey
from datetime import datetime
from roboshop.core.database import Base


class Rental(Base):
    __tablename__ = "rentals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    machine_id = Column(Integer, ForeignKey("machines.id", ondelete="CASCADE"), nullable=False, index=True)

    # Booked interval; an open rental has no end date yet
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    with_shipping = Column(Boolean, default=False)

    # Client Info
    client_first_name = Column(String, nullable=False)
    client_last_name = Column(String, nullable=False)
    client_phone = Column(String, nullable=True)
    client_address = Column(String, nullable=True)
    client_postal = Column(String, nullable=True)
    client_city = Column(String, nullable=True)

    # Payment
    deposit_to_pay = Column(Boolean, default=True)
    paid = Column(Boolean, default=False)

    guests = Column(JSON, default=list)
    event_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Rental(id={self.id}, machine={self.machine_id}, start={self.start_date})>"
