from pydantic_settings import BaseSettings
from typing import Optional
from datetime import time

class Settings(BaseSettings):
    PROJECT_NAME: str = "CareQueue"
    API_V1_STR: str = "/api/v1"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "carequeue"
    DATABASE_URL: Optional[str] = None
    AUTO_CREATE_TABLES: bool = True

    # Tokens are issued by the identity service; we only verify them
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"

    LOG_LEVEL: str = "INFO"

    # Scheduling defaults
    DEFAULT_SLOT_DURATION_MINUTES: int = 30
    DEFAULT_AVAILABLE_FROM: time = time(9, 0)
    DEFAULT_AVAILABLE_TO: time = time(17, 0)
    APPOINTMENT_NUMBER_PREFIX: str = "APT"
    DEFAULT_POSTPONE_REASON: str = "Rescheduled"
    # None means a doctor may have any number of consultations in progress
    MAX_IN_PROGRESS_PER_DOCTOR: Optional[int] = None

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

settings = Settings()
