from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: Literal["dev", "prod"] = "dev"

    # Page store
    DATABASE_URL: str

    # Notion token used by policies that don't name their own
    NOTION_TOKEN: str | None = None
    NOTION_TIMEOUT_SECONDS: int = Field(60, ge=1)

    # Shared secrets for the trigger endpoints; unset rejects every call
    SYNC_SECRET: str | None = None
    WEBHOOK_SECRET: str | None = None

    # Module exporting POLICIES
    SYNC_POLICY_MODULE: str = "sync_policies"

    # Background sync
    SYNC_ENABLED: bool = True
    SYNC_INTERVAL_SECONDS: int = Field(5 * 60, ge=30)
    SYNC_DEADLINE_SECONDS: int | None = Field(None, ge=1)  # per scheduled run

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    SLACK_WEBHOOK_URL: str | None = None

    DOCS_ENABLED: bool | None = None  # None = on in dev only

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENV == "prod"

    @property
    def debug_enabled(self) -> bool:
        return not self.is_production

    @property
    def effective_log_level(self) -> str:
        """LOG_LEVEL, except that production never logs below INFO."""
        level = (self.LOG_LEVEL or "INFO").strip().upper()
        if self.is_production and level in ("TRACE", "DEBUG"):
            return "INFO"
        return level

    @property
    def docs_enabled(self) -> bool:
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return not self.is_production


settings = Settings()
