import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "3000"))
    api_base_url: str = os.getenv("CRUMBELORE_API_URL", "http://localhost:3000")

    # Server-side JSON collections
    data_dir: str = os.getenv("CRUMBELORE_DATA_DIR", "./data")

    # Client-side working copy (catalog, reservations, session)
    client_dir: str = os.getenv(
        "CRUMBELORE_CLIENT_DIR",
        os.path.join(os.path.expanduser("~"), ".crumbelore"),
    )

    # Record store retry policy
    store_retries: int = int(os.getenv("STORE_RETRIES", "3"))
    store_retry_delay: float = float(os.getenv("STORE_RETRY_DELAY", "0.1"))

    # HTTP client
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "5"))
    http_connect_timeout: float = float(os.getenv("HTTP_CONNECT_TIMEOUT", "2"))

    # Session and reservation lifetimes
    session_hours: int = int(os.getenv("SESSION_HOURS", "4"))
    reservation_days: int = int(os.getenv("RESERVATION_DAYS", "7"))

    # Sync dead-letter log size
    sync_dead_letter_size: int = int(os.getenv("SYNC_DEAD_LETTER_SIZE", "50"))

    # Application
    app_name: str = os.getenv("APP_NAME", "Crumbelore Bookstore & Cafe")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Optional bearer token override for sync calls
    sync_token: Optional[str] = os.getenv("CRUMBELORE_SYNC_TOKEN")


settings = Settings()
