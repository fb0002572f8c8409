"""Shared configuration."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Base settings for the billing services."""

    # Service info
    service_name: str = "payme-service"
    service_port: int = 8000

    # Database
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "billing"
    database_dsn: Optional[str] = None  # Full async URL, overrides the postgres_* parts
    database_echo: bool = False

    # Payme merchant API
    payme_merchant_id: str = ""
    payme_secret_key: str = ""
    payme_minor_unit_scale: int = 100  # 1 UZS = 100 tiyin
    payme_account_field: str = "order_id"

    # Logging
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Get async database connection URL."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        case_sensitive = False
