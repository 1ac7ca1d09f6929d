from enum import Enum
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TEST = "test"
    PRODUCTION = "production"


class StorageBackend(str, Enum):
    DURABLE = "durable"
    MEMORY = "memory"
    AUTO = "auto"


class DoctorMatchPolicy(str, Enum):
    # actor.id == doctor.user_id
    OWNING_USER = "owning_user"
    # actor.id == appointment.doctor_id
    PROFILE_ID = "profile_id"


INSECURE_SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Doctor Appointment API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: Environment = Environment.PRODUCTION
    LOG_LEVEL: str = "INFO"

    # Storage
    DATABASE_URL: str = "sqlite:///./appointments.db"
    STORAGE_BACKEND: StorageBackend = StorageBackend.AUTO

    # Security
    SECRET_KEY: str = INSECURE_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 30

    # Appointments
    DOCTOR_MATCH_POLICY: DoctorMatchPolicy = DoctorMatchPolicy.OWNING_USER
    SLOT_MINUTES: int = 30

    # Reminders
    ENABLE_SCHEDULER: bool = True
    REMINDER_INTERVAL_MINUTES: int = 60

    # Optional admin account created at startup
    ADMIN_EMAIL: Optional[str] = None
    ADMIN_PASSWORD: Optional[str] = None

    CORS_ORIGINS: List[str] = ["http://localhost:8080", "http://localhost:3000"]

    @model_validator(mode="after")
    def require_secret_key_in_production(self):
        if self.SECRET_KEY == INSECURE_SECRET_KEY and self.ENVIRONMENT == Environment.PRODUCTION:
            raise ValueError("SECRET_KEY must be set when ENVIRONMENT is production")
        return self

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT


settings = Settings()
