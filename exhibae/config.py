import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./exhibae.db")

# Managed auth provider (Supabase) - tokens are HS256 JWTs signed with the project secret
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
if not SUPABASE_JWT_SECRET:
    import warnings

    warnings.warn(
        "SUPABASE_JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION",
        RuntimeWarning,
        stacklevel=2,
    )
    SUPABASE_JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")

# Frontend base URL for notification deep links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Email microservice used by the notification fan-out
EMAIL_SERVICE_URL = os.getenv("EMAIL_SERVICE_URL", "http://localhost:8000")
EMAIL_SERVICE_API_KEY = os.getenv("EMAIL_SERVICE_API_KEY")
EMAIL_DISPATCH_TIMEOUT = float(os.getenv("EMAIL_DISPATCH_TIMEOUT", "10"))

# SMTP transport for the email microservice
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_SECURE = os.getenv("SMTP_SECURE", "false").lower() == "true"
SMTP_FROM = os.getenv("SMTP_FROM", "ExhiBae <noreply@exhibae.com>")

# Resend Email Configuration (fallback)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", SMTP_FROM)

# Failed sends are retried by the queue processor until this many attempts
EMAIL_MAX_ATTEMPTS = int(os.getenv("EMAIL_MAX_ATTEMPTS", "3"))

# Realtime relay across API processes
REDIS_URL = os.getenv("REDIS_URL")
REALTIME_REDIS_ENABLED = os.getenv("REALTIME_REDIS_ENABLED", "false").lower() == "true"
REALTIME_REDIS_CHANNEL = os.getenv("REALTIME_REDIS_CHANNEL", "exhibae:changes")

# Exhibition reminders are sent this many days before the start date
REMINDER_DAYS = [int(d) for d in os.getenv("REMINDER_DAYS", "7,3,1").split(",") if d.strip()]

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]
