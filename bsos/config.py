import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bsos.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Public base URL used to build webhook callback URLs for the platforms
APP_URL = os.getenv("APP_URL", "http://localhost:8000")

# Webhook signing secrets (HMAC-SHA256 over the raw body)
AIRBNB_WEBHOOK_SECRET = os.getenv("AIRBNB_WEBHOOK_SECRET")
HOSTAWAY_WEBHOOK_SECRET = os.getenv("HOSTAWAY_WEBHOOK_SECRET")
BOOKING_WEBHOOK_SECRET = os.getenv("BOOKING_WEBHOOK_SECRET")

# Webhooks - 100 requests per minute across all platforms
WEBHOOK_RATE_LIMIT = int(os.getenv("WEBHOOK_RATE_LIMIT", "100"))
WEBHOOK_RATE_WINDOW_SECONDS = int(os.getenv("WEBHOOK_RATE_WINDOW_SECONDS", "60"))

# Platform API behaviour
# When true, read calls fall back to demonstration data if the platform is unreachable
INTEGRATION_DEMO_FALLBACK = os.getenv("INTEGRATION_DEMO_FALLBACK", "true").lower() == "true"
INTEGRATION_MAX_RETRIES = int(os.getenv("INTEGRATION_MAX_RETRIES", "3"))
INTEGRATION_RETRY_BASE_DELAY = float(os.getenv("INTEGRATION_RETRY_BASE_DELAY", "0.5"))
INTEGRATION_TIMEOUT = float(os.getenv("INTEGRATION_TIMEOUT", "10.0"))
DEFAULT_SYNC_INTERVAL_MINUTES = int(os.getenv("DEFAULT_SYNC_INTERVAL_MINUTES", "15"))

# Twilio WhatsApp Configuration (cleaning team notifications)
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_WHATSAPP_FROM = os.getenv("TWILIO_WHATSAPP_FROM")  # e.g. +14155238886
# Comma separated E.164 numbers of the cleaning team
CLEANING_TEAM_WHATSAPP = [
    n.strip() for n in os.getenv("CLEANING_TEAM_WHATSAPP", "").split(",") if n.strip()
]

# Resend Email Configuration (manager notifications)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "BSOS <noreply@bsos.app>")
MANAGER_EMAIL = os.getenv("MANAGER_EMAIL")

# Redis (rate limiting and ARQ background jobs)
# REDIS_URL takes precedence over the individual settings
REDIS_URL = os.getenv("REDIS_URL")
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_SSL = os.getenv("REDIS_SSL", "false").lower() == "true"

# ARQ worker
ARQ_MAX_JOBS = int(os.getenv("ARQ_MAX_JOBS", "10"))
ARQ_JOB_TIMEOUT = int(os.getenv("ARQ_JOB_TIMEOUT", "600"))  # 10 minutes
