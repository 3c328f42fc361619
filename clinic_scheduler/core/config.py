import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_scheduler.db")
SQLITE_BUSY_TIMEOUT_SECONDS = float(os.getenv("SQLITE_BUSY_TIMEOUT_SECONDS", "15"))

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Naive datetimes everywhere are wall-clock times in this zone.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

DEFAULT_APPOINTMENT_DURATION_MINUTES = int(os.getenv("DEFAULT_APPOINTMENT_DURATION_MINUTES", "30"))
MAX_APPOINTMENT_DURATION_MINUTES = int(os.getenv("MAX_APPOINTMENT_DURATION_MINUTES", "480"))

SLOT_DEDUPLICATE = _get_bool(os.getenv("SLOT_DEDUPLICATE"), default=False)

CHANNEL_DEFAULT_INITIAL_STATUS = os.getenv("CHANNEL_DEFAULT_INITIAL_STATUS", "CONFIRMED").upper()
CHANNEL_CANCEL_REASON = os.getenv(
    "CHANNEL_CANCEL_REASON",
    "Cancelled by patient via automated channel",
)

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DEFAULT_APPOINTMENT_DURATION_MINUTES <= 0:
        raise RuntimeError("DEFAULT_APPOINTMENT_DURATION_MINUTES must be positive.")
    if not 0 < MAX_APPOINTMENT_DURATION_MINUTES <= 24 * 60:
        raise RuntimeError("MAX_APPOINTMENT_DURATION_MINUTES must be between 1 and 1440.")
    if CHANNEL_DEFAULT_INITIAL_STATUS not in {"SCHEDULED", "CONFIRMED"}:
        raise RuntimeError("CHANNEL_DEFAULT_INITIAL_STATUS must be SCHEDULED or CONFIRMED.")
