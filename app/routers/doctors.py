from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.security import get_current_admin_user, get_current_doctor_user
from app.database import get_db
from app.models.doctor import Weekday
from app.models.user import User
from app.services import doctors as doctor_service

router = APIRouter(prefix="/api/doctors", tags=["doctors"])

ClockTime = Annotated[str, StringConstraints(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")]

class AvailabilitySlotSchema(BaseModel):
    day: Weekday
    start_time: ClockTime
    end_time: ClockTime
    is_available: bool = True

    model_config = ConfigDict(from_attributes=True)

class Education(BaseModel):
    degree: Optional[str] = None
    institution: Optional[str] = None
    year_of_graduation: Optional[int] = None

class Certification(BaseModel):
    name: Optional[str] = None
    issuing_authority: Optional[str] = None
    year: Optional[int] = None

class DoctorCreate(BaseModel):
    user_id: int
    specialization: str
    license_number: str
    experience: int = Field(..., ge=0)
    education: Optional[Education] = None
    certifications: List[Certification] = []
    languages: List[str] = []
    consultation_fee: float = Field(..., ge=0)
    availability: List[AvailabilitySlotSchema] = []
    bio: Optional[str] = Field(None, max_length=500)
    profile_image: Optional[str] = None

class DoctorUpdate(BaseModel):
    specialization: Optional[str] = None
    experience: Optional[int] = Field(None, ge=0)
    education: Optional[Education] = None
    certifications: Optional[List[Certification]] = None
    languages: Optional[List[str]] = None
    consultation_fee: Optional[float] = Field(None, ge=0)
    availability: Optional[List[AvailabilitySlotSchema]] = None
    bio: Optional[str] = Field(None, max_length=500)
    is_available: Optional[bool] = None
    profile_image: Optional[str] = None

class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    phone: str

    model_config = ConfigDict(from_attributes=True)

class DoctorResponse(BaseModel):
    id: int
    user_id: int
    user: Optional[UserSummary] = None
    specialization: str
    license_number: str
    experience: int
    education: Optional[Education] = None
    certifications: Optional[List[Certification]] = None
    languages: Optional[List[str]] = None
    consultation_fee: float
    availability: List[AvailabilitySlotSchema] = []
    bio: Optional[str] = None
    rating: Optional[float] = 0
    total_reviews: Optional[int] = 0
    is_available: bool
    profile_image: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class AvailabilityResponse(BaseModel):
    is_available: bool
    availability: List[AvailabilitySlotSchema]

class OpenSlot(BaseModel):
    start_time: str
    end_time: str

@router.get("", response_model=List[DoctorResponse])
async def list_doctors(
    specialization: Optional[str] = None,
    rating: Optional[float] = Query(None, ge=0, le=5),
    db: Session = Depends(get_db)
):
    return doctor_service.list_doctors(db, specialization=specialization, min_rating=rating)

@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: int,
    db: Session = Depends(get_db)
):
    return doctor_service.get_doctor(db, doctor_id)

@router.get("/{doctor_id}/availability", response_model=AvailabilityResponse)
async def get_doctor_availability(
    doctor_id: int,
    db: Session = Depends(get_db)
):
    doctor = doctor_service.get_doctor(db, doctor_id)
    return {"is_available": doctor.is_available, "availability": doctor.availability}

@router.get("/{doctor_id}/available-slots", response_model=List[OpenSlot])
async def get_available_slots(
    doctor_id: int,
    date_str: str = Query(..., alias="date"),
    db: Session = Depends(get_db)
):
    """
    Returns open booking slots for a doctor on a specific date.
    """
    try:
        target_date = datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")

    return doctor_service.available_slots(db, doctor_id, target_date, settings.SLOT_MINUTES)

@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    doctor: DoctorCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    return doctor_service.create_doctor(db, current_user, doctor.model_dump())

@router.put("/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: int,
    doctor: DoctorUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_doctor_user)
):
    return doctor_service.update_doctor(db, doctor_id, current_user, doctor.model_dump(exclude_unset=True, exclude_none=True))

@router.delete("/{doctor_id}")
async def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    doctor_service.delete_doctor(db, doctor_id, current_user)
    return {"message": "Doctor removed"}
