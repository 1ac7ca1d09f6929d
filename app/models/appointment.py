from sqlalchemy import Boolean, Column, Integer, String, Float, ForeignKey, Date, DateTime, Enum, Index, JSON, text
from sqlalchemy.orm import relationship
import enum
from app.database import Base
from sqlalchemy.sql import func

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"

ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
TERMINAL_STATUSES = (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)

class AppointmentType(str, enum.Enum):
    IN_PERSON = "in-person"
    VIDEO = "video"
    PHONE = "phone"

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"

class CancelledBy(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"

def _values(e):
    return [m.value for m in e]

# Partial index predicate shared by sqlite and postgresql
_ACTIVE_SLOT = text("status IN ('pending', 'confirmed')")

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=False)  # HH:MM
    status = Column(
        Enum(AppointmentStatus, values_callable=_values, native_enum=False, length=20),
        default=AppointmentStatus.PENDING,
        nullable=False,
    )
    appointment_type = Column(
        Enum(AppointmentType, values_callable=_values, native_enum=False, length=20),
        default=AppointmentType.IN_PERSON,
        nullable=False,
    )
    reason = Column(String, nullable=False)
    symptoms = Column(JSON, default=list)
    notes = Column(String, nullable=True)
    prescription = Column(JSON, nullable=True)  # {medications: [...], instructions}
    payment_status = Column(
        Enum(PaymentStatus, values_callable=_values, native_enum=False, length=20),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    amount = Column(Float, nullable=False)
    cancellation_reason = Column(String, nullable=True)
    cancelled_by = Column(Enum(CancelledBy, values_callable=_values, native_enum=False, length=20), nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    patient = relationship("User", back_populates="patient_appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    notifications = relationship("Notification", back_populates="appointment")

    __table_args__ = (
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
        Index("ix_appointments_patient_date", "patient_id", "appointment_date"),
        Index("ix_appointments_status", "status"),
        # At most one active appointment per doctor slot and per patient slot
        Index(
            "uq_appointments_doctor_active_slot",
            "doctor_id", "appointment_date", "start_time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT,
            postgresql_where=_ACTIVE_SLOT,
        ),
        Index(
            "uq_appointments_patient_active_slot",
            "patient_id", "appointment_date", "start_time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT,
            postgresql_where=_ACTIVE_SLOT,
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration(self) -> int:
        """Length of the appointment in minutes."""
        start_h, start_m = map(int, self.start_time.split(":"))
        end_h, end_m = map(int, self.end_time.split(":"))
        return (end_h * 60 + end_m) - (start_h * 60 + start_m)
