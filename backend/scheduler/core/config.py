from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# The backing store refuses batches larger than this.
MAX_BATCH_OPERATIONS = 450


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PROJECT_NAME: str = "Group Scheduler"
    ENVIRONMENT: str = "local"
    LOG_LEVEL: str = "INFO"

    # Campaign partition used by the legacy static invite codes
    APP_NAMESPACE: str = "default"

    STORE_BACKEND: Literal["memory", "sql", "none"] = "memory"
    DATABASE_URL: str = "sqlite:///./scheduler.db"
    STORE_TRANSACTION_MAX_ATTEMPTS: int = 5

    # Redis change feed for the SQL store
    REDIS_URL: str = "redis://localhost:6379/0"
    STORE_CHANGE_FEED_ENABLED: bool = False
    STORE_CHANGE_CHANNEL: str = "scheduler:documents"

    INVITE_CODE_MAX_ATTEMPTS: int = 6
    LEGACY_MEMBER_INVITE_CODE: str = ""
    LEGACY_ADMIN_INVITE_CODE: str = ""
    ADMIN_EMAILS: List[str] = []

    DELETE_BATCH_SIZE: int = MAX_BATCH_OPERATIONS
    CAMPAIGN_NAME_MAX_LENGTH: int = 64

    TOP_CANDIDATE_LIMIT: int = 5
    TOP_CANDIDATES_EXCLUDE_UNANSWERED: bool = True
    FIRST_DAY_OF_WEEK: Literal["sunday", "monday"] = "sunday"

    @field_validator("ADMIN_EMAILS", mode="before")
    @classmethod
    def assemble_admin_emails(cls, value: List[str] | str) -> List[str]:
        """Allow both comma-separated strings and list inputs."""
        if isinstance(value, str):
            return [email.strip().lower() for email in value.split(",") if email.strip()]
        return [email.strip().lower() for email in value]

    @field_validator("DELETE_BATCH_SIZE")
    @classmethod
    def cap_delete_batch_size(cls, value: int) -> int:
        if value < 1 or value > MAX_BATCH_OPERATIONS:
            raise ValueError(f"DELETE_BATCH_SIZE must be between 1 and {MAX_BATCH_OPERATIONS}")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
