import os
from dataclasses import dataclass


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "EvoFit AI")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    DB_PATH: str = os.getenv("DB_PATH", "./app.db")
    # comma separated; matching sign-ups get the admin role (local identity backend)
    ADMIN_EMAILS: str = os.getenv("ADMIN_EMAILS", "")

    # local | supabase
    IDENTITY_BACKEND: str = os.getenv("IDENTITY_BACKEND", "local")
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_PHONE_NUMBER: str = os.getenv("TWILIO_PHONE_NUMBER", "")
    TWILIO_WHATSAPP_NUMBER: str = os.getenv("TWILIO_WHATSAPP_NUMBER", "")
    TWILIO_API_BASE: str = os.getenv("TWILIO_API_BASE", "https://api.twilio.com")
    DEFAULT_NOTIFICATION_PHONE: str = os.getenv("DEFAULT_NOTIFICATION_PHONE", "")
    HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

    SUPPORT_CONTACT_URL: str = os.getenv("SUPPORT_CONTACT_URL", "https://wa.me/5511999999999")
    EXPIRY_WARNING_DAYS: int = int(os.getenv("EXPIRY_WARNING_DAYS", "7"))
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = int(os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "3600"))
    EXPIRY_SWEEP_ON_READ: bool = _env_bool("EXPIRY_SWEEP_ON_READ")
    ACCESS_FAIL_OPEN: bool = _env_bool("ACCESS_FAIL_OPEN")

settings = Settings()
