import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookingcore.db")

# Automation scheduler - read once when the scheduler starts
AUTOMATION_ENABLED = os.getenv("AUTOMATION_ENABLED", "true").lower() != "false"
AUTOMATION_INTERVAL_MS = int(os.getenv("AUTOMATION_INTERVAL_MS", "60000"))

# Per-workspace automation defaults (used when workspace settings omit a value)
DEFAULT_BOOKING_REMINDER_LEAD_MINUTES = 60
DEFAULT_FORM_REMINDER_COOLDOWN_HOURS = 12
DEFAULT_FORM_REMINDER_MAX = 3

# Contacts created without an email get an address on this domain
PLACEHOLDER_EMAIL_DOMAIN = os.getenv("PLACEHOLDER_EMAIL_DOMAIN", "no-email.local")

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Bookings <noreply@bookingcore.app>")
