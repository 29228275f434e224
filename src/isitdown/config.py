from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    app_name: str = "IsItDownChecker"
    app_version: str = "0.1.0"
    debug: bool = False
    port: int = 5000

    # Database (empty -> fallback mode with static sample data)
    database_url: str = "sqlite+aiosqlite:///./isitdown.db"

    # Prober
    probe_timeout: int = 10  # seconds
    probe_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )
    probe_proxy_url: str = ""  # e.g. http://isitdownchecker.com:5000

    # Monitoring
    monitor_interval: int = 300  # one website every 5 minutes
    monitor_refresh_every: int = 10  # cycles between list refreshes

    # User reports
    report_window_hours: int = 24
    report_retention_hours: int = 7 * 24

    # JWT
    secret_key: str = "change-me-in-production-use-a-real-secret-key"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours
    password_reset_expire_minutes: int = 30

    # Email (SMTP)
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "alerts@isitdownchecker.com"
    smtp_use_tls: bool = True

    # Base URL
    base_url: str = "http://localhost:5000"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
