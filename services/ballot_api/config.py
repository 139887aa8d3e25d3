"""Configuration management for the Ballot API service."""
from typing import Literal
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    SERVICE_NAME: str = "ballot-api"
    API_VERSION: str = "v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # PostgreSQL configuration
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "voting_system"
    POSTGRES_USER: str = "election_user"
    POSTGRES_PASSWORD: str = "election_pass"

    # Connection pool
    POSTGRES_POOL_MIN_SIZE: int = 5
    POSTGRES_POOL_MAX_SIZE: int = 20
    POSTGRES_ACQUIRE_TIMEOUT: float = 5.0
    POSTGRES_COMMAND_TIMEOUT: float = 10.0

    # Server-side limits applied to every pooled connection
    POSTGRES_STATEMENT_TIMEOUT_MS: int = 5000
    POSTGRES_LOCK_TIMEOUT_MS: int = 3000

    # Apply schema.sql on startup
    AUTO_CREATE_SCHEMA: bool = True

    # Position catalog: "static" uses POSITION_CATALOG, "candidates" derives
    # the offices from the candidate roster. Only consulted on the first
    # startup; afterwards the persisted snapshot wins.
    CATALOG_SOURCE: Literal["static", "candidates"] = "static"
    POSITION_CATALOG: list[str] = ["President", "Vice President", "Secretary", "Treasurer"]

    # Retry Configuration
    VOTE_MAX_RETRIES: int = 1
    VOTE_RETRY_DELAY_SECONDS: float = 0.1

    # Rate limiting
    RATE_LIMIT: str = "20/second"

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def postgres_dsn(self) -> str:
        """Generate PostgreSQL connection string."""
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()
