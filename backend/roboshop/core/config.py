import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./roboshop.db")
if DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql", "postgresql+asyncpg", 1)
DATABASE_ECHO = os.getenv("DATABASE_ECHO", "false").lower() == "true"

# Google Calendar buckets, one per kind of scheduled entity
GOOGLE_CALENDAR_MAINTENANCE_ID = os.getenv("GOOGLE_CALENDAR_MAINTENANCE_ID", "")
GOOGLE_CALENDAR_RENTAL_ID = os.getenv("GOOGLE_CALENDAR_RENTAL_ID", "")
GOOGLE_CALENDAR_PURCHASE_ORDERS_ID = os.getenv("GOOGLE_CALENDAR_PURCHASE_ORDERS_ID", "")
GOOGLE_CALENDAR_PHONE_CALLBACKS_ID = os.getenv("GOOGLE_CALENDAR_PHONE_CALLBACKS_ID", "")

# Calendar days and all-day events are computed in this zone
CALENDAR_TIMEZONE = os.getenv("CALENDAR_TIMEZONE", "Europe/Paris")
CALENDAR_TIMEOUT_SECONDS = float(os.getenv("CALENDAR_TIMEOUT_SECONDS", "10"))
CALENDAR_MAX_ATTEMPTS = int(os.getenv("CALENDAR_MAX_ATTEMPTS", "3"))
CALENDAR_TOKEN_REFRESH_MINUTES = int(os.getenv("CALENDAR_TOKEN_REFRESH_MINUTES", "30"))

# Google OAuth
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI")
GOOGLE_TOKEN_FILE = os.getenv("GOOGLE_TOKEN_FILE", "./google_token.json")
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

# Rentals
DEFAULT_SHIPPING_FEE = Decimal(os.getenv("DEFAULT_SHIPPING_FEE", "0"))
SHIPPING_PRICE_CONFIG_KEY = "shipping_price"

# Outgoing mail
SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
EMAIL_FROM = os.getenv("EMAIL_FROM", "Robot Shop <noreply@localhost>")
EMAIL_REPLY_TO = os.getenv("EMAIL_REPLY_TO")

# Maintenance reminders
MAINTENANCE_REMINDER_EMAILS = [
    email.strip()
    for email in os.getenv("MAINTENANCE_REMINDER_EMAILS", "").split(",")
    if email.strip()
]
MAINTENANCE_REMINDER_HOUR = int(os.getenv("MAINTENANCE_REMINDER_HOUR", "8"))
MAINTENANCE_REMINDER_DAYS_AHEAD = int(os.getenv("MAINTENANCE_REMINDER_DAYS_AHEAD", "7"))
MAINTENANCE_REMINDERS_ENABLED = os.getenv("MAINTENANCE_REMINDERS_ENABLED", "true").lower() == "true"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# API server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
