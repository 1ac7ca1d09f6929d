import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr
from sqlalchemy.orm import Session

from app.core.exceptions import Unauthorized, ValidationError
from app.core.security import verify_password, get_password_hash, create_access_token, get_current_active_user
from app.database import get_db
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["authentication"])

class EmergencyContact(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None

class UserCreate(BaseModel):
    name: str
    email: EmailStr
    password: str
    phone: str
    role: UserRole = UserRole.PATIENT
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None

class ProfileResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    role: UserRole
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None

    model_config = ConfigDict(from_attributes=True)

class Token(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    role: UserRole
    token: str

def _token_response(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "token": create_access_token(user.id),
    }

@router.post("/signup", response_model=Token, status_code=status.HTTP_201_CREATED)
async def signup(user_data: UserCreate, db: Session = Depends(get_db)):
    # Doctor and admin roles are granted by an admin, never self-assigned
    if user_data.role != UserRole.PATIENT:
        raise ValidationError("Only patient accounts can be created at signup")

    # Check if user already exists
    if db.query(User).filter(User.email == user_data.email).first():
        raise ValidationError("User already exists")

    db_user = User(
        name=user_data.name,
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        phone=user_data.phone,
        role=UserRole.PATIENT,
        date_of_birth=user_data.date_of_birth,
        gender=user_data.gender,
        address=user_data.address,
    )

    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("User %s registered", db_user.id)

    return _token_response(db_user)

@router.post("/login", response_model=Token)
async def login(user_data: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == user_data.email).first()
    if not user or not verify_password(user_data.password, user.hashed_password):
        raise Unauthorized("Invalid email or password")

    return _token_response(user)

@router.get("/profile", response_model=ProfileResponse)
async def get_profile(current_user: User = Depends(get_current_active_user)):
    return current_user

@router.put("/profile", response_model=Token)
async def update_profile(
    profile: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    changes = profile.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes and changes["email"] != current_user.email:
        if db.query(User).filter(User.email == changes["email"]).first():
            raise ValidationError("Email already in use")

    password = changes.pop("password", None)
    if password:
        current_user.hashed_password = get_password_hash(password)

    for key, value in changes.items():
        setattr(current_user, key, value)

    db.commit()
    db.refresh(current_user)
    return _token_response(current_user)
