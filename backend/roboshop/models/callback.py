from sqlalchemy import Column, String, Integer, JSON, DateTime, Boolean, Text
from datetime import datetime
from enum import Enum
from roboshop.core.database import Base


class CallbackReason(str, Enum):
    QUOTE = "QUOTE"
    AFTER_SALES = "AFTER_SALES"
    DELIVERY = "DELIVERY"
    APPOINTMENT = "APPOINTMENT"
    OTHER = "OTHER"


CALLBACK_REASON_LABELS = {
    CallbackReason.QUOTE: "Quote request",
    CallbackReason.AFTER_SALES: "After-sales service",
    CallbackReason.DELIVERY: "Delivery",
    CallbackReason.APPOINTMENT: "Appointment",
    CallbackReason.OTHER: "Other",
}


class PhoneCallback(Base):
    __tablename__ = "phone_callbacks"

    id = Column(Integer, primary_key=True, autoincrement=True)

    phone_number = Column(String, nullable=False)
    client_name = Column(String, nullable=False)
    reason = Column(String, nullable=False)  # see CallbackReason
    description = Column(Text, nullable=False)
    responsible_person = Column(String, nullable=False)
    completed = Column(Boolean, default=False)

    # 30-minute reminder slot starting here
    scheduled_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    guests = Column(JSON, default=list)
    event_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<PhoneCallback(id={self.id}, client={self.client_name})>"
