import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core import permissions
from app.core.exceptions import Forbidden, NotFound, ValidationError
from app.models.doctor import AvailabilitySlot, Doctor, Weekday
from app.models.user import User, UserRole
from app.services.appointments import booked_slots, to_minutes, validate_time_range

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "specialization",
    "experience",
    "education",
    "certifications",
    "languages",
    "consultation_fee",
    "availability",
    "bio",
    "is_available",
    "profile_image",
}


def _build_slots(availability):
    slots = []
    for slot in availability or []:
        validate_time_range(slot["start_time"], slot["end_time"])
        slots.append(AvailabilitySlot(
            day=Weekday(slot["day"]),
            start_time=slot["start_time"],
            end_time=slot["end_time"],
            is_available=slot.get("is_available", True),
        ))
    return slots


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).options(
        joinedload(Doctor.user),
        joinedload(Doctor.availability),
    ).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFound("Doctor not found")
    return doctor


def list_doctors(db: Session, specialization: str = None, min_rating: float = None):
    query = db.query(Doctor).options(joinedload(Doctor.user)).filter(Doctor.is_available == True)  # noqa: E712

    if specialization:
        query = query.filter(Doctor.specialization.ilike(f"%{specialization}%"))
    if min_rating is not None:
        query = query.filter(Doctor.rating >= min_rating)

    return query.order_by(Doctor.id).all()


def create_doctor(db: Session, actor: User, data: dict) -> Doctor:
    """Create a doctor profile for an existing user and promote that user.

    The profile is flushed first; the user's role only changes once the
    profile row has been accepted, and both land in the same commit.
    """
    if not permissions.can_manage_doctors(actor):
        raise Forbidden("Not authorized as an admin")

    data = dict(data)
    user = db.query(User).filter(User.id == data["user_id"]).first()
    if not user:
        raise NotFound("User not found")
    if db.query(Doctor).filter(Doctor.user_id == user.id).first():
        raise ValidationError("Doctor profile already exists for this user")
    if db.query(Doctor).filter(Doctor.license_number == data["license_number"]).first():
        raise ValidationError("License number already exists")

    availability = _build_slots(data.pop("availability", None))
    doctor = Doctor(**data)
    doctor.availability = availability
    db.add(doctor)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Doctor profile or license number already exists")

    if user.role != UserRole.ADMIN:
        user.role = UserRole.DOCTOR
    db.commit()
    logger.info("Doctor profile %s created for user %s", doctor.id, user.id)
    return get_doctor(db, doctor.id)


def update_doctor(db: Session, doctor_id: int, actor: User, changes: dict) -> Doctor:
    doctor = get_doctor(db, doctor_id)
    if not permissions.can_update_doctor(actor, doctor):
        raise Forbidden("Not authorized to update this doctor")

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    changes = dict(changes)
    if "availability" in changes:
        doctor.availability = _build_slots(changes.pop("availability"))
    for key, value in changes.items():
        setattr(doctor, key, value)

    db.commit()
    return get_doctor(db, doctor_id)


def delete_doctor(db: Session, doctor_id: int, actor: User):
    """Remove a doctor profile and return its owner to the patient role.

    The owning user is kept. Past appointments stay on record with their
    doctor reference cleared.
    """
    if not permissions.can_manage_doctors(actor):
        raise Forbidden("Not authorized as an admin")

    doctor = get_doctor(db, doctor_id)
    user = doctor.user

    db.delete(doctor)
    db.flush()
    if user is not None and user.role == UserRole.DOCTOR:
        user.role = UserRole.PATIENT
    db.commit()
    logger.info("Doctor profile %s removed", doctor_id)


def available_slots(db: Session, doctor_id: int, on_date: date, slot_minutes: int):
    """Open slots for a doctor on a day.

    Slots are cut from the doctor's enabled availability windows for that
    weekday and skip anything overlapping an active booking.
    """
    doctor = get_doctor(db, doctor_id)
    if not doctor.is_available:
        return []

    weekday = Weekday.from_date(on_date)
    windows = [w for w in doctor.availability if w.day == weekday and w.is_available]
    booked = booked_slots(db, doctor.id, on_date)

    slots = []
    for window in windows:
        slot_start = to_minutes(window.start_time)
        window_end = to_minutes(window.end_time)
        while slot_start + slot_minutes <= window_end:
            slot_end = slot_start + slot_minutes
            overlap = any(slot_start < b_end and slot_end > b_start for b_start, b_end in booked)
            if not overlap:
                slots.append({
                    "start_time": f"{slot_start // 60:02d}:{slot_start % 60:02d}",
                    "end_time": f"{slot_end // 60:02d}:{slot_end % 60:02d}",
                })
            slot_start += slot_minutes
    return sorted(slots, key=lambda s: s["start_time"])
