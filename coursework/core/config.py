from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Coursework Core"
    DATABASE_URL: str = "sqlite:///./coursework.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://127.0.0.1:5500",
        "http://localhost:5500",
    ]

    # Submission list pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    MAX_BULK_ENROLL: int = 100
    # Number of extra attempts after a unique-constraint race on enroll
    ENROLL_RETRY_ATTEMPTS: int = 1

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
