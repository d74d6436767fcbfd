import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")
    ENV = os.getenv("APP_ENV", "development")

    # SQLite database file stored next to the app as krpl.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "krpl.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create missing tables at startup (dev); use `flask db upgrade` otherwise
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "true").lower() == "true"

    # The protected super admin account, seeded at startup
    SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL", "admin@krpl.tech")
    SUPERADMIN_NAME = os.getenv("SUPERADMIN_NAME", "Super Admin")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "krpl_session"

    # 30 days, rolled forward on every authenticated request
    SESSION_LIFETIME_SECONDS = 30 * 24 * 60 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = ENV == "production"

    # Email OTP
    OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
    OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", "600"))  # 10 minutes

    # Simple IP rate limit for the OTP endpoints
    OTP_RATE_WINDOW_SECONDS = 60
    OTP_REQUEST_RATE_MAX = 5
    OTP_VERIFY_RATE_MAX = 15

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", "noreply@krpl.tech")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
