import os
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # project root (where wsgi.py is)
load_dotenv(BASE_DIR / ".env")

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///" + str(BASE_DIR / "pollbooth.db"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-dev-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MIN", "30"))
    )
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(
        days=int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7"))
    )

    # Booths
    INVITE_CODE_LENGTH = int(os.getenv("INVITE_CODE_LENGTH", "6"))
    INVITE_CODE_MAX_ATTEMPTS = int(os.getenv("INVITE_CODE_MAX_ATTEMPTS", "10"))
    VOTE_MAX_RETRIES = int(os.getenv("VOTE_MAX_RETRIES", "3"))
    DEFAULT_MAX_BOOTHS = int(os.getenv("DEFAULT_MAX_BOOTHS", "5"))
    DEFAULT_MAX_MEMBERS = int(os.getenv("DEFAULT_MAX_MEMBERS", "100"))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Mail (SMTP)
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() == "true"
    MAIL_USE_SSL = os.getenv("MAIL_USE_SSL", "false").lower() == "true"
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", MAIL_USERNAME)
    MAIL_SUPPRESS_SEND = os.getenv("MAIL_SUPPRESS_SEND", "false").lower() == "true"
    SWAGGER = {"title": "PollBooth API", "uiversion": 3}


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    SECRET_KEY = "test-secret"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@pollbooth.test"
    LOG_LEVEL = "WARNING"
