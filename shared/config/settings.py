"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    CLAUDE = "claude"
    OLLAMA = "ollama"


class StoreBackend(str, Enum):
    """Submission store backend."""

    POSTGRES = "postgres"
    MEMORY = "memory"


class PostgresSettings(BaseSettings):
    """PostgreSQL database configuration."""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = "localhost"
    port: int = 5432
    user: str = "aigov"
    password: SecretStr = SecretStr("aigov_dev_password")
    db: str = "aigov"

    @property
    def async_url(self) -> str:
        """Generate async SQLAlchemy connection URL."""
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.db}"


class StoreSettings(BaseSettings):
    """Which submission store the service uses."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: StoreBackend = StoreBackend.POSTGRES


class ClaudeSettings(BaseSettings):
    """Anthropic Claude API configuration."""

    model_config = SettingsConfigDict(env_prefix="CLAUDE_")

    api_key: SecretStr = Field(
        default=SecretStr(""),
        alias="ANTHROPIC_API_KEY",
    )
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 8000


class OllamaSettings(BaseSettings):
    """Ollama local LLM configuration."""

    model_config = SettingsConfigDict(env_prefix="OLLAMA_")

    host: str = "http://localhost:11434"
    model: str = "llama3.3:70b"


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    provider: LLMProvider = LLMProvider.CLAUDE
    temperature: float = 0.1
    max_retries: int = 3
    timeout_seconds: int = 120

    # Provider-specific settings
    claude: ClaudeSettings = Field(default_factory=ClaudeSettings)
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)


class AnalysisSettings(BaseSettings):
    """Narrative risk analysis configuration."""

    model_config = SettingsConfigDict(env_prefix="ANALYSIS_")

    enabled: bool = True
    # Upper bound on the whole narrative call, retries included
    timeout_seconds: float = 90.0
    max_tokens: int = 8000


class NotificationSettings(BaseSettings):
    """Outbound notification configuration."""

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    webhook_url: str = ""
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        """Webhook delivery is on when a URL is configured."""
        return bool(self.webhook_url)


class CORSSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    origins: str = "http://localhost:3000"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables with sensible defaults.
    Use the global `settings` singleton or call `get_settings()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO
    service_port: int = Field(default=8010, alias="RISK_REVIEW_PORT")

    # Persistence
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)

    # LLM configuration
    llm: LLMSettings = Field(default_factory=LLMSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)

    # Outbound
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    # Security
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton.
    """
    return Settings()
