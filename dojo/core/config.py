from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Dates are evaluated in the dojo's local business calendar, not UTC.
    business_timezone: str = Field("Asia/Kolkata", alias="BUSINESS_TIMEZONE")
    fee_reminder_days_before: int = Field(3, alias="FEE_REMINDER_DAYS_BEFORE")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_format: Optional[str] = Field(None, alias="LOG_FORMAT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
