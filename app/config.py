import json
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

ONESIGNAL_API_URL = "https://onesignal.com/api/v1/notifications"
DEFAULT_SITE_URL = "https://nzsportsclub.lovable.app"
HTTP_TIMEOUT_SECONDS = 10


def is_testing() -> bool:
    return os.getenv("TESTING", "").lower() in ("1", "true", "yes")


def get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    if is_testing():
        return "sqlite+aiosqlite:///:memory:"

    db_user = os.getenv("DB_USER")
    db_password = os.getenv("DB_PASSWORD")
    db_host = os.getenv("DB_HOST")
    db_port = os.getenv("DB_PORT")
    db_name = os.getenv("DB_NAME")
    if not db_password:
        raise ValueError("DB_PASSWORD environment variable is required")
    return f"postgresql+asyncpg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def get_onesignal_credentials() -> tuple[Optional[str], Optional[str]]:
    """Returns (app_id, rest_api_key); either may be None when unset."""
    return os.getenv("ONESIGNAL_APP_ID") or None, os.getenv("ONESIGNAL_REST_API_KEY") or None


def get_site_url() -> str:
    return (os.getenv("SITE_URL") or DEFAULT_SITE_URL).rstrip("/")


def get_firebase_service_account() -> Optional[dict]:
    """
    Loads the Firebase service account either from the FIREBASE_SERVICE_ACCOUNT
    JSON string or from the file named by FIREBASE_CREDENTIALS_PATH.
    Returns None when neither is configured.
    """
    raw = os.getenv("FIREBASE_SERVICE_ACCOUNT")
    if raw:
        return json.loads(raw)
    path = os.getenv("FIREBASE_CREDENTIALS_PATH")
    if path and os.path.exists(path):
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    return None
