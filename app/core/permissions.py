"""Role and ownership checks for appointment and doctor records.

Every function here is a pure predicate over an acting user and a record.
Callers decide how to report a denial.

Whether a doctor "is" the doctor on an appointment depends on the
configured :class:`~app.core.config.DoctorMatchPolicy`:

* ``owning_user`` compares the acting user's id with the ``user_id`` of the
  appointment's doctor profile.
* ``profile_id`` compares the acting user's id with the appointment's raw
  ``doctor_id`` for update, cancel and complete. It only matches when user
  and profile ids happen to coincide. Kept selectable until product confirms
  which is meant.
"""
from app.core.config import settings, DoctorMatchPolicy
from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.user import User, UserRole


def is_admin(actor: User) -> bool:
    return actor.role == UserRole.ADMIN


def is_appointment_patient(actor: User, appointment: Appointment) -> bool:
    return appointment.patient_id == actor.id


def is_appointment_doctor(actor: User, appointment: Appointment, policy: DoctorMatchPolicy = None) -> bool:
    policy = policy or settings.DOCTOR_MATCH_POLICY
    if policy == DoctorMatchPolicy.PROFILE_ID:
        return appointment.doctor_id == actor.id
    return appointment.doctor is not None and appointment.doctor.user_id == actor.id


def can_view_appointment(actor: User, appointment: Appointment) -> bool:
    if is_admin(actor):
        return True
    return (
        is_appointment_patient(actor, appointment)
        or is_appointment_doctor(actor, appointment, DoctorMatchPolicy.OWNING_USER)
    )


def can_modify_appointment(actor: User, appointment: Appointment, policy: DoctorMatchPolicy = None) -> bool:
    """Update and cancel: the patient, the appointment's doctor, or an admin."""
    if is_admin(actor):
        return True
    return is_appointment_patient(actor, appointment) or is_appointment_doctor(actor, appointment, policy)


def can_complete_appointment(actor: User, appointment: Appointment, policy: DoctorMatchPolicy = None) -> bool:
    """Complete, confirm and no-show: the appointment's doctor or an admin, never the patient."""
    if is_admin(actor):
        return True
    if is_appointment_patient(actor, appointment):
        return False
    return is_appointment_doctor(actor, appointment, policy)


def can_list_patient_appointments(actor: User, patient_id: int) -> bool:
    return is_admin(actor) or actor.id == patient_id


def can_list_doctor_appointments(actor: User, doctor: Doctor) -> bool:
    return is_admin(actor) or doctor.user_id == actor.id


def can_manage_doctors(actor: User) -> bool:
    # create and delete
    return is_admin(actor)


def can_update_doctor(actor: User, doctor: Doctor) -> bool:
    return is_admin(actor) or doctor.user_id == actor.id
