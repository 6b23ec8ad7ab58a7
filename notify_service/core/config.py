from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Locate the nearest .env starting from this file's directory
def find_env_file() -> Path | None:
    current = Path(__file__).resolve()
    for parent in current.parents:
        env_file = parent / ".env"
        if env_file.exists():
            return env_file
    return None


ENV_FILE = find_env_file()
BASE_DIR = ENV_FILE.parent if ENV_FILE else Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "ParkGolf Notify Service"

    # Database (any async SQLAlchemy URL; sqlite+aiosqlite for local runs)
    DATABASE_URL: str = "sqlite+aiosqlite:///./notify_service.db"
    DB_ECHO: bool = False

    LOG_LEVEL: str = "INFO"

    # Scheduler
    ENABLE_SCHEDULER: bool = True
    SCHEDULER_TIMEZONE: str = "Asia/Seoul"
    DUE_TICK_SECONDS: int = 60
    RETRY_TICK_SECONDS: int = 60
    DEAD_LETTER_SWEEP_MINUTES: int = 5
    DEAD_LETTER_STATS_HOURS: int = 1
    DEAD_LETTER_CLEANUP_HOUR: int = 3

    # Delivery policy
    # backoff before retry N+1 = BACKOFF_BASE_MINUTES * 2^retry_count
    DEFAULT_MAX_RETRIES: int = 3
    BACKOFF_BASE_MINUTES: int = 1
    DEAD_LETTER_RETENTION_DAYS: int = 30
    TICK_BATCH_SIZE: int = 200
    DELIVERY_CONCURRENCY: int = 10
    DELIVERY_TIMEOUT_SECONDS: float = 15.0
    CLAIM_LEASE_SECONDS: int = 120
    PENDING_PICKUP_GRACE_SECONDS: int = 300

    # Device registry (iam-service); unset -> no device tokens
    IAM_SERVICE_URL: str | None = None
    DEVICE_LOOKUP_TIMEOUT_SECONDS: float = 5.0

    # Push provider credentials, tried in this order:
    # 1. GCP_SA_KEY: service account JSON (raw or base64)
    # 2. FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY
    # 3. GOOGLE_APPLICATION_CREDENTIALS: path to a service account JSON file
    GCP_SA_KEY: str | None = None
    FIREBASE_PROJECT_ID: str | None = None
    FIREBASE_CLIENT_EMAIL: str | None = None
    FIREBASE_PRIVATE_KEY: str | None = None
    GOOGLE_APPLICATION_CREDENTIALS: str | None = None
    PUSH_TIMEOUT_SECONDS: float = 10.0

    # Email / SMS gateways; unset -> simulated delivery
    EMAIL_GATEWAY_URL: str | None = None
    SMS_GATEWAY_URL: str | None = None
    GATEWAY_API_KEY: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("GOOGLE_APPLICATION_CREDENTIALS", mode="before")
    @classmethod
    def _resolve_credentials_path(cls, value: str | Path | None) -> str | None:
        if not value:
            return None
        resolved_path = Path(value)
        if not resolved_path.is_absolute():
            resolved_path = BASE_DIR / resolved_path
        return str(resolved_path)


settings = Settings()
