from pathlib import Path
import os

from dotenv import load_dotenv

# Load environment variables from repo root (if present).
REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskx.db")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
CORS_ORIGINS = [origin.strip() for origin in _cors_origins.split(",") if origin.strip()]

# Where the browser lands after the Google consent redirect.
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{APP_URL}/api/integrate")
CALENDAR_NAME = os.getenv("CALENDAR_NAME", "TaskX Events")

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
EMAIL_USER = os.getenv("EMAIL_USER", "")
EMAIL_PASS = os.getenv("EMAIL_PASS", "")

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "")

REMINDER_TIMEZONE = os.getenv("REMINDER_TIMEZONE", "Asia/Kolkata")
REMINDER_WINDOW_START_MINUTES = int(os.getenv("REMINDER_WINDOW_START_MINUTES", "9"))
REMINDER_WINDOW_END_MINUTES = int(os.getenv("REMINDER_WINDOW_END_MINUTES", "10"))
