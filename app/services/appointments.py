"""Appointment booking and lifecycle.

An appointment starts ``pending`` and moves toward exactly one terminal
status (``completed``, ``cancelled`` or ``no-show``). Nothing leaves a
terminal status. Every mutation runs the permission check first and the
transition second.

Double booking is guarded twice: ``create_appointment`` looks for an active
appointment in the same doctor or patient slot before inserting, and the
partial unique indexes on ``appointments`` reject whatever slips through
between that read and the insert.
"""
import logging
import re
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core import permissions
from app.core.config import DoctorMatchPolicy
from app.core.exceptions import Forbidden, InvalidTransition, NotFound, SlotConflict, Unavailable, ValidationError
from app.models.appointment import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    CancelledBy,
)
from app.models.doctor import Doctor
from app.models.user import User
from app.services.notifications import create_appointment_notification

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    },
}

UPDATABLE_FIELDS = {
    "appointment_date",
    "start_time",
    "end_time",
    "appointment_type",
    "reason",
    "symptoms",
    "notes",
    "payment_status",
}

REQUIRED_FIELDS = {
    "appointment_date",
    "start_time",
    "end_time",
    "appointment_type",
    "reason",
    "payment_status",
}


def to_minutes(value: str) -> int:
    match = TIME_PATTERN.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def validate_time_range(start_time: str, end_time: str):
    if to_minutes(start_time) >= to_minutes(end_time):
        raise ValidationError("Start time must be before end time")


def _joined_query(db: Session):
    return db.query(Appointment).options(
        joinedload(Appointment.patient),
        joinedload(Appointment.doctor).joinedload(Doctor.user),
    )


def _load(db: Session, appointment_id: int) -> Appointment:
    appointment = _joined_query(db).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFound("Appointment not found")
    return appointment


def _commit(db: Session):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Only the active-slot indexes are unique on appointments
        if "unique" not in str(e.orig).lower():
            raise
        logger.info("Rejected write on an already booked slot")
        raise SlotConflict("Time slot is already booked")

def _transition(appointment: Appointment, target: AppointmentStatus, message: str):
    if target not in ALLOWED_TRANSITIONS.get(appointment.status, set()):
        raise InvalidTransition(message)
    appointment.status = target


def find_slot_conflict(db: Session, *, appointment_date: date, start_time: str,
                       doctor_id: int = None, patient_id: int = None) -> Optional[Appointment]:
    query = db.query(Appointment).filter(
        Appointment.appointment_date == appointment_date,
        Appointment.start_time == start_time,
        Appointment.status.notin_([AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW]),
    )
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    return query.first()


def create_appointment(
    db: Session,
    patient: User,
    *,
    doctor_id: int,
    appointment_date: date,
    start_time: str,
    end_time: str,
    reason: str,
    appointment_type: AppointmentType = AppointmentType.IN_PERSON,
    symptoms=None,
) -> Appointment:
    validate_time_range(start_time, end_time)
    if not reason or not reason.strip():
        raise ValidationError("Reason for appointment is required")

    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if not doctor:
        raise NotFound("Doctor not found")
    if not doctor.is_available:
        raise Unavailable("Doctor is not available")

    if find_slot_conflict(db, appointment_date=appointment_date, start_time=start_time, doctor_id=doctor_id):
        raise SlotConflict("Time slot is already booked")
    if find_slot_conflict(db, appointment_date=appointment_date, start_time=start_time, patient_id=patient.id):
        raise SlotConflict("You already have an appointment at this time")

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        appointment_type=appointment_type,
        reason=reason,
        symptoms=list(symptoms or []),
        status=AppointmentStatus.PENDING,
        amount=doctor.consultation_fee,
    )
    db.add(appointment)
    _commit(db)

    appointment = _load(db, appointment.id)
    create_appointment_notification(db, appointment, "booked")
    db.commit()
    logger.info(
        "Appointment %s booked: patient=%s doctor=%s slot=%s %s",
        appointment.id, patient.id, doctor.id, appointment_date, start_time,
    )
    return appointment


def get_appointment(db: Session, appointment_id: int, actor: User) -> Appointment:
    appointment = _load(db, appointment_id)
    if not permissions.can_view_appointment(actor, appointment):
        raise Forbidden("Not authorized to view this appointment")
    return appointment


def update_appointment(db: Session, appointment_id: int, actor: User, changes: dict,
                       policy: DoctorMatchPolicy = None) -> Appointment:
    appointment = _load(db, appointment_id)
    if not permissions.can_modify_appointment(actor, appointment, policy):
        raise Forbidden("Not authorized to update this appointment")

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    cleared = {key for key in REQUIRED_FIELDS & set(changes) if changes[key] is None}
    if cleared:
        raise ValidationError(f"Fields cannot be empty: {', '.join(sorted(cleared))}")
    if "reason" in changes and not changes["reason"].strip():
        raise ValidationError("Reason for appointment is required")

    start_time = changes.get("start_time", appointment.start_time)
    end_time = changes.get("end_time", appointment.end_time)
    validate_time_range(start_time, end_time)

    rescheduled = (
        changes.get("appointment_date", appointment.appointment_date) != appointment.appointment_date
        or start_time != appointment.start_time
    )
    for key, value in changes.items():
        setattr(appointment, key, value)
    # A new slot needs its own reminder
    if rescheduled:
        appointment.reminder_sent = False
    _commit(db)
    return _load(db, appointment_id)


def confirm_appointment(db: Session, appointment_id: int, actor: User,
                        policy: DoctorMatchPolicy = None) -> Appointment:
    appointment = _load(db, appointment_id)
    if not permissions.can_complete_appointment(actor, appointment, policy):
        raise Forbidden("Not authorized to confirm this appointment")

    _transition(appointment, AppointmentStatus.CONFIRMED, "Only pending appointments can be confirmed")
    create_appointment_notification(db, appointment, "confirmed")
    db.commit()
    return _load(db, appointment_id)


def cancel_appointment(db: Session, appointment_id: int, actor: User, cancellation_reason: str = None,
                       policy: DoctorMatchPolicy = None) -> Appointment:
    appointment = _load(db, appointment_id)
    if not permissions.can_modify_appointment(actor, appointment, policy):
        raise Forbidden("Not authorized to cancel this appointment")

    _transition(appointment, AppointmentStatus.CANCELLED, "Appointment cannot be cancelled")
    appointment.cancellation_reason = cancellation_reason
    if permissions.is_admin(actor):
        appointment.cancelled_by = CancelledBy.ADMIN
    elif permissions.is_appointment_patient(actor, appointment):
        appointment.cancelled_by = CancelledBy.PATIENT
    else:
        appointment.cancelled_by = CancelledBy.DOCTOR

    create_appointment_notification(db, appointment, "cancelled")
    db.commit()
    logger.info("Appointment %s cancelled by %s", appointment_id, appointment.cancelled_by.value)
    return _load(db, appointment_id)


def complete_appointment(db: Session, appointment_id: int, actor: User, prescription: dict = None,
                         notes: str = None, policy: DoctorMatchPolicy = None) -> Appointment:
    appointment = _load(db, appointment_id)
    if not permissions.can_complete_appointment(actor, appointment, policy):
        raise Forbidden("Not authorized to complete this appointment")

    _transition(appointment, AppointmentStatus.COMPLETED, "Appointment cannot be completed")
    appointment.prescription = prescription
    appointment.notes = notes

    create_appointment_notification(db, appointment, "completed")
    db.commit()
    logger.info("Appointment %s completed", appointment_id)
    return _load(db, appointment_id)


def mark_no_show(db: Session, appointment_id: int, actor: User,
                 policy: DoctorMatchPolicy = None) -> Appointment:
    appointment = _load(db, appointment_id)
    if not permissions.can_complete_appointment(actor, appointment, policy):
        raise Forbidden("Not authorized to update this appointment")

    _transition(appointment, AppointmentStatus.NO_SHOW, "Appointment cannot be marked as no-show")
    db.commit()
    return _load(db, appointment_id)


def list_appointments(
    db: Session,
    *,
    patient_id: int = None,
    doctor_id: int = None,
    status: AppointmentStatus = None,
    on_date: date = None,
):
    if (patient_id is None) == (doctor_id is None):
        raise ValueError("Filter by exactly one of patient_id or doctor_id")

    query = _joined_query(db)
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    else:
        query = query.filter(Appointment.doctor_id == doctor_id)

    if status is not None:
        query = query.filter(Appointment.status == status)

    if on_date is not None:
        query = query.filter(
            Appointment.appointment_date >= on_date,
            Appointment.appointment_date < on_date + timedelta(days=1),
        )

    return query.order_by(Appointment.appointment_date.asc(), Appointment.start_time.asc()).all()


def booked_slots(db: Session, doctor_id: int, on_date: date):
    """(start, end) minute pairs of the doctor's active appointments on ``on_date``."""
    appointments = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_date == on_date,
        Appointment.status.notin_([AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW]),
    ).all()
    return [(to_minutes(a.start_time), to_minutes(a.end_time)) for a in appointments]
