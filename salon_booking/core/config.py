import os
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import model_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # App
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    TRANSACTION_MAX_RETRIES: int = int(os.getenv("TRANSACTION_MAX_RETRIES", "3"))
    RESERVATION_ISOLATION_LEVEL: str = os.getenv("RESERVATION_ISOLATION_LEVEL", "SERIALIZABLE")

    # Reviews
    REVIEW_EDIT_WINDOW_HOURS: int = int(os.getenv("REVIEW_EDIT_WINDOW_HOURS", "24"))
    REVIEW_REQUIRE_COMPLETED_RESERVATION: bool = (
        os.getenv("REVIEW_REQUIRE_COMPLETED_RESERVATION", "True").lower() == "true"
    )

    # Salon operating window used for slot enumeration
    SALON_OPENING_HOUR: int = int(os.getenv("SALON_OPENING_HOUR", "9"))
    SALON_CLOSING_HOUR: int = int(os.getenv("SALON_CLOSING_HOUR", "18"))
    SALON_TIMEZONE: str = os.getenv("SALON_TIMEZONE", "UTC")

    @model_validator(mode="after")
    def check_operating_window(self):
        if not (0 <= self.SALON_OPENING_HOUR < self.SALON_CLOSING_HOUR <= 24):
            raise ValueError(
                f"Invalid salon operating window: {self.SALON_OPENING_HOUR}-{self.SALON_CLOSING_HOUR}"
            )
        try:
            ZoneInfo(self.SALON_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown SALON_TIMEZONE: {self.SALON_TIMEZONE}") from e
        if self.TRANSACTION_MAX_RETRIES < 1:
            raise ValueError("TRANSACTION_MAX_RETRIES must be at least 1")
        return self

    @property
    def CORS_ORIGIN_LIST(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def IS_SQLITE(self):
        return not self.DATABASE_URL or self.DATABASE_URL.startswith("sqlite")

    @property
    def salon_zone(self) -> ZoneInfo:
        return ZoneInfo(self.SALON_TIMEZONE)

settings = Settings()
