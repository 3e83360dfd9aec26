"""Application settings, loaded from the environment and an optional ``.env`` file."""
from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Storage
    DATA_DIR: Path = Path("data")
    DATABASE_URL: str = "sqlite:///data/payrun.db"
    PAYSLIPS_DIR: Path = Path("data/payslips")
    PAYROLLS_DIR: Path = Path("data/payrolls")

    # Payroll calculation
    TAX_RATE: float = 0.10
    HEALTH_INSURANCE_RATE: float = 0.02
    RETIREMENT_401K_RATE: float = 0.05
    PAYROLL_CURRENCY: str = "USD"

    # Queue lanes
    PAYROLL_JOB_ATTEMPTS: int = 3
    PAYROLL_BACKOFF_MS: int = 2000
    EMAIL_JOB_ATTEMPTS: int = 5
    EMAIL_BACKOFF_MS: int = 1000

    # Workers
    RUN_WORKERS_IN_PROCESS: bool = False
    WORKER_POLL_INTERVAL: float = 1.0
    CLEANUP_INTERVAL_SECONDS: int = 3600
    COMPLETED_RETENTION_HOURS: int = 24
    FAILED_RETENTION_DAYS: int = 7
    STALLED_JOB_TIMEOUT_SECONDS: int = 1800

    # Outgoing mail; unset SMTP_HOST means notifications are only logged
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: SecretStr | None = None
    SMTP_SENDER: str = "payroll@example.com"
    SMTP_USE_TLS: bool = True

    # Auth
    JWT_SECRET: SecretStr = SecretStr("changeme")
    REFRESH_TOKEN_SECRET: SecretStr = SecretStr("changeme_refresh")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_TTL_MINUTES: int = 24 * 60
    REFRESH_TOKEN_TTL_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # HTTP
    API_BASE_URL: str = "http://127.0.0.1:8000"
    # bearer token the CLI sends; obtain one with `payrun login`
    API_TOKEN: SecretStr | None = None
    LOG_LEVEL: str = "INFO"


settings = Settings()
