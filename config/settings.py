from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Core
    ENVIRONMENT: str = Field(default="production")
    LOG_LEVEL: str = Field(default="INFO")
    FIRESTORE_PROJECT_ID: str = Field(default="")
    APP_NAME: str = Field(default="Firework Factory App")

    # Identity (Firebase ID tokens are issued for the Firebase project id)
    FIREBASE_PROJECT_ID: str = Field(default="")
    AUTH_REQUIRE_VERIFIED_EMAIL: bool = Field(default=False)
    DEFAULT_USER_ROLE: str = Field(default="user")

    # Local cache
    CACHE_TTL_SECONDS: int = Field(default=30 * 60)
    LOCAL_STORE_DIR: str = Field(default="")  # empty -> in-memory store

    # Retention
    AUDIT_MAX_LOGS_PER_COLLECTION: int = Field(default=1000)
    AUDIT_RETENTION_DAYS: int = Field(default=90)
    NOTIFICATION_HISTORY_MAX: int = Field(default=500)

    # Notifications (0 keeps repeat low-stock notifications)
    LOW_STOCK_SUPPRESSION_MINUTES: int = Field(default=0)

    # Backups
    BACKUP_FORMAT_VERSION: str = Field(default="1.0.0")
    BACKUP_EXPORT_DIR: str = Field(default=".")
    BACKUP_GCS_BUCKET: str = Field(default="")  # empty -> exports go to BACKUP_EXPORT_DIR


settings = Settings()
