import enum

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Text, ForeignKey, Enum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.database import Base

class NotificationKind(str, enum.Enum):
    APPOINTMENT = "appointment"
    REMINDER = "reminder"

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(120), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(
        Enum(NotificationKind, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=NotificationKind.APPOINTMENT,
        nullable=False,
    )
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="notifications")
    appointment = relationship("Appointment", back_populates="notifications")
