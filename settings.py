import os
import re
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel


_DURATION_RE = re.compile(r"^\s*(\d+)\s*([dhms]?)\s*$")
_DURATION_UNITS = {"d": "days", "h": "hours", "m": "minutes", "s": "seconds", "": "seconds"}


def parse_duration(value: str) -> timedelta:
    """Parse "90d", "12h", "30m", "45s" or a bare number of seconds."""
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


class Settings(BaseModel):
    app_env: str = "development"
    database_url: Optional[str] = None
    database_name: Optional[str] = None

    jwt_secret: str = "dev_secret_change_me"
    jwt_algorithm: str = "HS256"
    # Token and cookie lifetimes are configured independently.
    jwt_expires_in: timedelta = timedelta(days=90)
    jwt_cookie_expires_in_days: int = 90

    bcrypt_rounds: int = 12
    otp_ttl_seconds: int = 300
    otp_max_attempts: Optional[int] = None
    password_reset_ttl_minutes: int = 10

    frontend_url: str = "http://localhost:3000"
    upload_dir: str = "public/uploads"

    mail_api_url: Optional[str] = None
    mail_api_key: Optional[str] = None
    mail_from: str = "Labbe <no-reply@labbe.app>"
    sms_api_url: Optional[str] = None
    sms_api_key: Optional[str] = None

    cors_origins: List[str] = ["http://localhost:3000", "https://labbe.vercel.app"]
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        max_attempts = os.getenv("OTP_MAX_ATTEMPTS")
        origins = os.getenv("CORS_ORIGINS")
        values = {
            "app_env": os.getenv("APP_ENV", "development"),
            "database_url": os.getenv("DATABASE_URL"),
            "database_name": os.getenv("DATABASE_NAME"),
            "jwt_secret": os.getenv("JWT_SECRET", "dev_secret_change_me"),
            "jwt_expires_in": parse_duration(os.getenv("JWT_EXPIRES_IN", "90d")),
            "jwt_cookie_expires_in_days": int(os.getenv("JWT_COOKIE_EXPIRES_IN", 90)),
            "bcrypt_rounds": int(os.getenv("BCRYPT_ROUNDS", 12)),
            "otp_ttl_seconds": int(os.getenv("OTP_TTL_SECONDS", 300)),
            "otp_max_attempts": int(max_attempts) if max_attempts else None,
            "password_reset_ttl_minutes": int(os.getenv("PASSWORD_RESET_TTL_MINUTES", 10)),
            "frontend_url": os.getenv("FRONTEND_URL", "http://localhost:3000"),
            "upload_dir": os.getenv("UPLOAD_DIR", "public/uploads"),
            "mail_api_url": os.getenv("MAIL_API_URL"),
            "mail_api_key": os.getenv("MAIL_API_KEY"),
            "mail_from": os.getenv("MAIL_FROM", "Labbe <no-reply@labbe.app>"),
            "sms_api_url": os.getenv("SMS_API_URL"),
            "sms_api_key": os.getenv("SMS_API_KEY"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        return cls(**values)


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()
