import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    # --- Database ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")
    DB_TIMEOUT = float(os.environ.get("DB_TIMEOUT", "10"))  # seconds, connect and per statement

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Logging ---
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # --- Push (Expo) ---
    EXPO_PUSH_URL = os.environ.get("EXPO_PUSH_URL", "https://exp.host/--/api/v2/push/send")
    EXPO_ACCESS_TOKEN = os.environ.get("EXPO_ACCESS_TOKEN")
    PUSH_BATCH_SIZE = int(os.environ.get("PUSH_BATCH_SIZE", "100"))
    PUSH_MAX_CONCURRENT_CHUNKS = int(os.environ.get("PUSH_MAX_CONCURRENT_CHUNKS", "4"))
    PUSH_TIMEOUT = float(os.environ.get("PUSH_TIMEOUT", "10"))

    # --- SMS gateway (our own /functions/v1/send-sms or a separate deployment) ---
    SMS_SERVICE_URL = os.environ.get("SMS_SERVICE_URL", "http://localhost:8000/functions/v1/send-sms")
    SERVICE_ROLE_KEY = os.environ.get("SERVICE_ROLE_KEY")
    SMS_TIMEOUT = float(os.environ.get("SMS_TIMEOUT", "10"))
    ENABLE_SMS_NOTIFICATIONS = _env_bool("ENABLE_SMS_NOTIFICATIONS", True)
    SMS_DEDUP_WINDOW_SECONDS = int(os.environ.get("SMS_DEDUP_WINDOW_SECONDS", "60"))
    SMS_COUNTRY_CODE = os.environ.get("SMS_COUNTRY_CODE", "+91")
    APP_DOWNLOAD_LINK = os.environ.get("APP_DOWNLOAD_LINK", "https://bit.ly/Bhishi")

    # --- Telnyx (SMS transport) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    # --- Payment reminder schedule ---
    REMINDER_TIMEZONE = os.environ.get("REMINDER_TIMEZONE", "Asia/Kolkata")
    REMINDER_HOUR = int(os.environ.get("REMINDER_HOUR", "9"))
    REMINDER_MINUTE = int(os.environ.get("REMINDER_MINUTE", "0"))
    REMINDER_DEDUP_ENABLED = _env_bool("REMINDER_DEDUP_ENABLED", True)

settings = Settings()
