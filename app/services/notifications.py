import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from app.models.appointment import Appointment, CancelledBy
from app.models.notification import Notification, NotificationKind

logger = logging.getLogger(__name__)


def _doctor_name(appointment: Appointment) -> str:
    if appointment.doctor is None or appointment.doctor.user is None:
        return "your doctor"
    return f"Dr. {appointment.doctor.user.name}"


def _slot(appointment: Appointment) -> str:
    return f"{appointment.appointment_date.isoformat()} {appointment.start_time}"


def create_appointment_notification(db: Session, appointment: Appointment, notification_type: str):
    """Queue an inbox message about ``appointment``; the caller commits."""
    doctor_name = _doctor_name(appointment)
    recipient_id = appointment.patient_id
    kind = NotificationKind.APPOINTMENT

    if notification_type == "booked":
        title = "Appointment Requested"
        message = f"Your appointment with {doctor_name} is pending confirmation for {_slot(appointment)}"
    elif notification_type == "confirmed":
        title = "Appointment Confirmed"
        message = f"Your appointment with {doctor_name} has been confirmed for {_slot(appointment)}"
    elif notification_type == "cancelled":
        title = "Appointment Cancelled"
        message = f"Your appointment with {doctor_name} on {_slot(appointment)} has been cancelled"
    elif notification_type == "completed":
        title = "Appointment Completed"
        message = f"Your appointment with {doctor_name} on {_slot(appointment)} is complete"
    elif notification_type == "reminder":
        title = "Appointment Reminder"
        message = f"Your appointment with {doctor_name} is scheduled for {_slot(appointment)}"
        kind = NotificationKind.REMINDER
    else:
        raise ValueError(f"Unknown notification type: {notification_type}")

    notification = Notification(
        user_id=recipient_id,
        title=title,
        message=message,
        type=kind,
        appointment_id=appointment.id
    )
    db.add(notification)

    # Let the doctor know when the patient or an admin cancels
    if (notification_type == "cancelled" and appointment.doctor is not None
            and appointment.cancelled_by != CancelledBy.DOCTOR):
        db.add(Notification(
            user_id=appointment.doctor.user_id,
            title=title,
            message=f"Appointment with {appointment.patient.name} on {_slot(appointment)} has been cancelled",
            type=kind,
            appointment_id=appointment.id
        ))

    logger.debug("Queued %s notification for appointment %s", notification_type, appointment.id)
    return notification


def list_notifications(db: Session, user_id: int):
    return db.query(Notification).filter(
        Notification.user_id == user_id
    ).order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(db: Session, user_id: int, notification_id: int):
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id
    ).first()
    if notification is None:
        return None
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        db.commit()
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_read == False  # noqa: E712
    ).update({"is_read": True, "read_at": datetime.now(timezone.utc)}, synchronize_session=False)
    db.commit()
    return count
