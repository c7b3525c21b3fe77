# servxpert/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import Field
from pydantic_settings import SettingsConfigDict
from typing import Optional, List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True)

    # Application Settings
    APP_NAME: str = "ServXpert Auth API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True
    BRAND_NAME: str = "ServXpert"

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # Database Settings
    DATABASE_URL: str = "sqlite:///./servxpert.db"

    # Security Settings
    SECRET_KEY: str = Field(default="change-me-in-prod", alias="JWT_SECRET_KEY")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    SIGNUP_TOKEN_EXPIRE_MINUTES: int = 15

    # CORS Settings
    ALLOWED_ORIGINS: str = "*"
    ALLOWED_METHODS: str = "GET,POST,PUT,DELETE,OPTIONS"
    ALLOWED_HEADERS: str = "*"

    # Middleware settings
    MAX_REQUEST_SIZE: int = 64 * 1024  # 64KB, bodies here are tiny JSON

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    REDIS_URL: Optional[str] = None

    # Twilio Settings (SMS delivery)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    # Resend Settings (email delivery)
    RESEND_API_KEY: str = ""
    EMAIL_FROM_ADDRESS: str = ""

    # OTP Settings
    OTP_EXPIRY_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 5
    OTP_ISSUE_MAX_PER_WINDOW: int = 5
    OTP_ISSUE_WINDOW_SECONDS: int = 900
    OTP_CODE_SECRET: Optional[str] = None
    OTP_RETENTION_HOURS: int = 24
    OTP_DELIVERY_MODE: str = "live"  # "live" or "console"

    # Phone numbers
    PHONE_DEFAULT_COUNTRY_CODE: str = "+91"
    ALLOW_INTERNATIONAL_PHONES: bool = False

    # Destinations that become admins when they complete their profile
    ADMIN_DESTINATIONS: str = ""

    # Helper methods for list envs
    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def allowed_methods_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_METHODS)

    @property
    def allowed_headers_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_HEADERS)

    @property
    def admin_destinations_list(self) -> List[str]:
        return [d.lower() for d in self._split_csv(self.ADMIN_DESTINATIONS)]

    @property
    def otp_code_secret(self) -> str:
        return self.OTP_CODE_SECRET or self.SECRET_KEY

@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # Normalize ALLOWED_ORIGINS if provided as comma-separated string env var CORS_ORIGINS
    cors_env = os.environ.get("CORS_ORIGINS")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s

settings: Settings = get_settings()
