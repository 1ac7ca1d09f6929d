from sqlalchemy import Boolean, Column, Integer, String, Float, ForeignKey, DateTime, Enum, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base

class Weekday(str, enum.Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_date(cls, value):
        # date.weekday(): 0=Monday
        return list(cls)[value.weekday()]

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    specialization = Column(String, nullable=False)
    license_number = Column(String, unique=True, nullable=False)
    experience = Column(Integer, nullable=False)
    education = Column(JSON, nullable=True)  # {degree, institution, year_of_graduation}
    certifications = Column(JSON, default=list)  # [{name, issuing_authority, year}]
    languages = Column(JSON, default=list)
    consultation_fee = Column(Float, nullable=False)
    bio = Column(String(500), nullable=True)
    rating = Column(Float, default=0)
    total_reviews = Column(Integer, default=0)
    is_available = Column(Boolean, default=True, nullable=False)
    profile_image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor_profile")
    availability = relationship(
        "AvailabilitySlot",
        back_populates="doctor",
        cascade="all, delete-orphan",
        order_by="AvailabilitySlot.id",
    )
    appointments = relationship("Appointment", back_populates="doctor")

class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    day = Column(Enum(Weekday, values_callable=lambda e: [m.value for m in e], native_enum=False), nullable=False)
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=False)  # HH:MM
    is_available = Column(Boolean, default=True)

    # Relationships
    doctor = relationship("Doctor", back_populates="availability")
