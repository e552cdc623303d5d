from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import CacheProviderType, Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Environment Profile
    environment: Environment = Environment.LOCAL

    app_name: str = "billing-sync"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "billing"
    db_use_nullpool: bool = (
        False  # True for queue workers (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # Cache backend (redis in every deployed environment)
    cache_provider: CacheProviderType = CacheProviderType.REDIS

    # OpenTelemetry
    otel_service_name: str = "billing-sync"
    otel_service_version: str = "0.1.0"
    otel_traces_endpoint: str = "https://api.axiom.co/v1/traces"
    otel_logs_endpoint: str = "https://api.axiom.co/v1/logs"

    # Axiom (exporters stay off while the token is empty)
    axiom_token: str = ""
    axiom_dataset: str = ""

    # Billing - Stripe (payments)
    stripe_secret_key: str = ""
    stripe_api_version: Optional[str] = None


settings = Settings()
