import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./marketplace.db")

# Scheduling defaults
# Recurrence and daily windows are interpreted in this zone unless the service sets its own
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")
# 09:00-19:00 reproduces the legacy hourly start list 09:00 .. 18:00 for one-hour services
DEFAULT_WINDOW_START = os.getenv("DEFAULT_WINDOW_START", "09:00")
DEFAULT_WINDOW_END = os.getenv("DEFAULT_WINDOW_END", "19:00")
MAX_SLOT_RANGE_DAYS = int(os.getenv("MAX_SLOT_RANGE_DAYS", "62"))
RESERVATION_TIMEOUT_SECONDS = float(os.getenv("RESERVATION_TIMEOUT_SECONDS", "10"))
NOTES_MAX_LENGTH = int(os.getenv("NOTES_MAX_LENGTH", "1000"))

# Rate limiting for booking submissions (per actor)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
BOOKING_RATE_LIMIT = int(os.getenv("BOOKING_RATE_LIMIT", "20"))
BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))
# Optional; the limiter keeps counts in memory only when unset
REDIS_URL = os.getenv("REDIS_URL")

# Frontend origins allowed by CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "http://localhost:5173,http://localhost:8080,http://localhost:3000",
).split(",")
