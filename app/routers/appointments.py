from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core import permissions
from app.core.exceptions import Forbidden
from app.core.security import get_current_active_user, get_current_doctor_user
from app.database import get_db
from app.models.appointment import AppointmentStatus, AppointmentType, CancelledBy, PaymentStatus
from app.models.user import User
from app.routers.doctors import ClockTime, UserSummary
from app.services import appointments as appointment_service
from app.services import doctors as doctor_service
from app.services.documents import generate_qr_code, prescription_pdf

router = APIRouter(prefix="/api/appointments", tags=["appointments"])

class Medication(BaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None

class Prescription(BaseModel):
    medications: List[Medication] = []
    instructions: Optional[str] = None

class AppointmentCreate(BaseModel):
    doctor_id: int
    appointment_date: date
    start_time: ClockTime
    end_time: ClockTime
    appointment_type: AppointmentType = AppointmentType.IN_PERSON
    reason: str = Field(..., min_length=1)
    symptoms: List[str] = []

class AppointmentUpdate(BaseModel):
    appointment_date: Optional[date] = None
    start_time: Optional[ClockTime] = None
    end_time: Optional[ClockTime] = None
    appointment_type: Optional[AppointmentType] = None
    reason: Optional[str] = None
    symptoms: Optional[List[str]] = None
    notes: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None

class CancelRequest(BaseModel):
    cancellation_reason: Optional[str] = None

class CompleteRequest(BaseModel):
    prescription: Optional[Prescription] = None
    notes: Optional[str] = None

class DoctorSummary(BaseModel):
    id: int
    user_id: int
    user: Optional[UserSummary] = None
    specialization: str
    consultation_fee: float

    model_config = ConfigDict(from_attributes=True)

class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: Optional[int] = None
    patient: UserSummary
    doctor: Optional[DoctorSummary] = None
    appointment_date: date
    start_time: str
    end_time: str
    duration: int
    status: AppointmentStatus
    appointment_type: AppointmentType
    reason: str
    symptoms: Optional[List[str]] = None
    notes: Optional[str] = None
    prescription: Optional[Prescription] = None
    payment_status: PaymentStatus
    amount: float
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[CancelledBy] = None
    reminder_sent: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment: AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return appointment_service.create_appointment(db, current_user, **appointment.model_dump())

@router.get("/user/{user_id}", response_model=List[AppointmentResponse])
async def get_user_appointments(
    user_id: int,
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    on_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if not permissions.can_list_patient_appointments(current_user, user_id):
        raise Forbidden("Not authorized to view these appointments")

    return appointment_service.list_appointments(db, patient_id=user_id, status=status_filter, on_date=on_date)

@router.get("/doctor/{doctor_id}", response_model=List[AppointmentResponse])
async def get_doctor_appointments(
    doctor_id: int,
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    on_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_doctor_user)
):
    doctor = doctor_service.get_doctor(db, doctor_id)
    if not permissions.can_list_doctor_appointments(current_user, doctor):
        raise Forbidden("Not authorized to view these appointments")

    return appointment_service.list_appointments(db, doctor_id=doctor_id, status=status_filter, on_date=on_date)

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return appointment_service.get_appointment(db, appointment_id, current_user)

@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    appointment: AppointmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    changes = appointment.model_dump(exclude_unset=True, exclude_none=True)
    return appointment_service.update_appointment(db, appointment_id, current_user, changes)

@router.put("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return appointment_service.confirm_appointment(db, appointment_id, current_user)

@router.put("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    body: Optional[CancelRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return appointment_service.cancel_appointment(
        db, appointment_id, current_user, cancellation_reason=body.cancellation_reason if body else None
    )

@router.put("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    body: Optional[CompleteRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    body = body or CompleteRequest()
    prescription = body.prescription.model_dump() if body.prescription else None
    return appointment_service.complete_appointment(
        db, appointment_id, current_user, prescription=prescription, notes=body.notes
    )

@router.put("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return appointment_service.mark_no_show(db, appointment_id, current_user)

@router.get("/{appointment_id}/qr-code")
async def get_appointment_qr_code(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    appointment = appointment_service.get_appointment(db, appointment_id, current_user)
    return Response(content=generate_qr_code(appointment), media_type="image/png")

@router.get("/{appointment_id}/prescription/pdf")
async def get_prescription_pdf(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    appointment = appointment_service.get_appointment(db, appointment_id, current_user)
    return Response(
        content=prescription_pdf(appointment),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="prescription_{appointment_id}.pdf"'},
    )
