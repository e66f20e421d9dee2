## docsign/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the application
    """

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", case_sensitive=False
    )

    environment: str = "development"
    allowed_cors_urls: str = "http://localhost:3000"

    log_level: str = "INFO"
    log_file: Optional[str] = None

    redis_host: str = "localhost"
    redis_port: str = "6379"
    redis_username: Optional[str] = None
    redis_password: Optional[str] = None

    db_host: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_database: Optional[str] = None
    db_port: int = 3306

    # Used when no MySQL host is configured (local runs and tests)
    sqlite_path: str = "docsign.db"

    default_date_format: str = "yyyy-MM-dd hh:mm a"
    default_timezone: str = "Etc/UTC"

    event_channel_prefix: str = "docsign-events"
    event_dispatch_batch_size: int = 100
    event_max_attempts: int = 5
    event_claim_timeout_seconds: int = 300

    @property
    def async_db_url(self) -> str:
        """
        Async database URL
        """
        if not self.db_host:
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        return f"mysql+asyncmy://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_database}"

    @property
    def redis_url(self) -> str:
        """
        Redis connection URL
        """
        if self.redis_username and self.redis_password:
            return f"redis://{self.redis_username}:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        elif self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}"

    @property
    def event_sink_url(self) -> str:
        """
        Redis database used for signing event pub/sub
        """
        return f"{self.redis_url}/0"

    @property
    def celery_broker(self) -> str:
        """
        Celery broker URL
        """
        return f"{self.redis_url}/1"

    @property
    def celery_backend(self) -> str:
        """
        Celery backend URL
        """
        return f"{self.redis_url}/2"


settings = Settings()
