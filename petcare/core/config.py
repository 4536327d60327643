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

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./petcare.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:5173"])

# Compatible mode writes the appointment first and flips the slot second.
# Strict mode claims the slot with a conditional update before inserting.
BOOKING_STRICT_SLOT_CLAIM = _get_bool(os.getenv("BOOKING_STRICT_SLOT_CLAIM"), default=False)

# %x renders the date in the process locale.
SLOT_LABEL_FORMAT = os.getenv("SLOT_LABEL_FORMAT", "%x %H:%M")

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
