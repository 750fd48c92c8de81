import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./volunteer_booking.db")

# Frontend base URL used in email links
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Resend Email Configuration (fallback when no SMTP server is configured)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv(
    "EMAIL_FROM_ADDRESS", "Fundación Quiero Trabajo <noreply@quierotrabajo.org>"
)

# Optional SMTP relay (takes priority over Resend when SMTP_HOST is set)
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Google Calendar (service account with domain-wide delegation)
# GOOGLE_SERVICE_ACCOUNT_JSON holds the key inline, GOOGLE_SERVICE_ACCOUNT_FILE points to it on disk
GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON")
GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE")
CALENDAR_TIME_ZONE = os.getenv("CALENDAR_TIME_ZONE", "Europe/Madrid")

# Zoho CRM - the refresh token is issued out of band by the OAuth setup flow
ZOHO_CLIENT_ID = os.getenv("ZOHO_CLIENT_ID")
ZOHO_CLIENT_SECRET = os.getenv("ZOHO_CLIENT_SECRET")
ZOHO_REFRESH_TOKEN = os.getenv("ZOHO_REFRESH_TOKEN")
ZOHO_DOMAIN = os.getenv("ZOHO_DOMAIN", "eu")  # com, eu, in, ...

# Host pools
# DEFAULT_HOST_POOL: comma separated list of team mailboxes
# HOST_POOLS: JSON object {"<service slug>": ["host@...", ...]}
# COMPANY_HOST_POOLS: JSON object {"<company id>": ["host@...", ...]}
DEFAULT_HOST_POOL = [
    email.strip().lower()
    for email in os.getenv(
        "DEFAULT_HOST_POOL",
        "barcelona@quierotrabajo.org,madrid@quierotrabajo.org,malaga@quierotrabajo.org,"
        "silvia@quierotrabajo.org,proyecto@quierotrabajo.org",
    ).split(",")
    if email.strip()
]
HOST_POOLS = json.loads(os.getenv("HOST_POOLS", "{}"))
COMPANY_HOST_POOLS = json.loads(os.getenv("COMPANY_HOST_POOLS", "{}"))
MAX_BOOKINGS_PER_HOST_PER_DAY = int(os.getenv("MAX_BOOKINGS_PER_HOST_PER_DAY", "0"))  # 0 = unlimited

# Offices available for in-person services
OFFICES = [o.strip() for o in os.getenv("OFFICES", "Barcelona,Madrid,Málaga").split(",") if o.strip()]

# Same volunteer cannot hold two confirmed bookings within this many days of each other
DUPLICATE_BOOKING_WINDOW_DAYS = int(os.getenv("DUPLICATE_BOOKING_WINDOW_DAYS", "7"))

# External call limits
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
SIDE_EFFECT_TIMEOUT_SECONDS = float(os.getenv("SIDE_EFFECT_TIMEOUT_SECONDS", "15"))

# Side effect retries (ARQ worker)
SIDE_EFFECT_MAX_ATTEMPTS = int(os.getenv("SIDE_EFFECT_MAX_ATTEMPTS", "5"))
SIDE_EFFECT_RETRY_BASE_SECONDS = int(os.getenv("SIDE_EFFECT_RETRY_BASE_SECONDS", "60"))

# Reminders: the day before, and again this many hours before the session starts
SOON_REMINDER_HOURS = int(os.getenv("SOON_REMINDER_HOURS", "2"))

# Organizer of exported .ics files when the booking has no host
ORGANIZATION_NAME = os.getenv("ORGANIZATION_NAME", "Fundación Quiero Trabajo")
ORGANIZATION_EMAIL = os.getenv("ORGANIZATION_EMAIL", "info@quierotrabajo.org")

# Redis for the ARQ worker
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]
