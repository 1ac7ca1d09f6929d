import logging
from datetime import date, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import SessionLocal
from app.models.appointment import Appointment, ACTIVE_STATUSES
from app.services.notifications import create_appointment_notification

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def send_due_reminders(db: Session, today: date = None) -> int:
    """Remind patients of active appointments today or tomorrow, once each."""
    today = today or date.today()
    tomorrow = today + timedelta(days=1)

    appointments = db.query(Appointment).filter(
        Appointment.appointment_date >= today,
        Appointment.appointment_date <= tomorrow,
        Appointment.status.in_(ACTIVE_STATUSES),
        Appointment.reminder_sent == False  # noqa: E712
    ).all()

    for appointment in appointments:
        create_appointment_notification(db, appointment, "reminder")
        appointment.reminder_sent = True
    db.commit()
    return len(appointments)


def check_upcoming_appointments():
    db = SessionLocal()
    try:
        sent = send_due_reminders(db)
        if sent:
            logger.info("Sent %d appointment reminders", sent)
    except Exception:
        db.rollback()
        logger.exception("Appointment reminder job failed")
    finally:
        db.close()


def start_scheduler():
    scheduler.add_job(
        check_upcoming_appointments,
        trigger=IntervalTrigger(minutes=settings.REMINDER_INTERVAL_MINUTES),
        id='check_appointments',
        replace_existing=True
    )
    scheduler.start()
    logger.info("Reminder scheduler started (every %s minutes)", settings.REMINDER_INTERVAL_MINUTES)


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
