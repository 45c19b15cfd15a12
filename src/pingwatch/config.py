from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    app_name: str = "PingWatch"
    app_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./pingwatch.db"

    # Email (SMTP)
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "alerts@pingwatch.app"
    smtp_use_tls: bool = True

    # Check defaults
    default_period: int = 60  # minutes
    default_grace: int = 30  # minutes
    ping_history_limit: int = 100

    # Background work
    sweep_interval_seconds: int = 60
    webhook_timeout: int = 10  # seconds
    probe_timeout: int = 10  # seconds

    # Base URL used to build public ping URLs
    base_url: str = "http://localhost:8000"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
