from typing import Literal, Optional
from urllib.parse import quote_plus

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "text_analysis"
    schema_name: Optional[str] = Field(default=None, validation_alias="DB_SCHEMA")
    serverless: bool = Field(
        default=False,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class ProvidersConfig(BaseSettings):
    """Credentials and endpoints for the streaming LLM vendors."""

    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "API_KEY"),
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias="OPENAI_BASE_URL",
    )
    openai_model: str = Field(default="gpt-4", validation_alias="OPENAI_MODEL")

    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("ANTHROPIC_API_KEY", "API_KEY"),
    )
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        validation_alias="ANTHROPIC_BASE_URL",
    )
    anthropic_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        validation_alias="ANTHROPIC_MODEL",
    )
    anthropic_max_tokens: int = Field(
        default=4000,
        validation_alias="ANTHROPIC_MAX_TOKENS",
        ge=1,
    )

    deepseek_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("DEEPSEEK_API_KEY", "API_KEY"),
    )
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1",
        validation_alias="DEEPSEEK_BASE_URL",
    )
    deepseek_model: str = Field(default="deepseek-chat", validation_alias="DEEPSEEK_MODEL")

    perplexity_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("PERPLEXITY_API_KEY", "API_KEY"),
    )
    perplexity_base_url: str = Field(
        default="https://api.perplexity.ai",
        validation_alias="PERPLEXITY_BASE_URL",
    )
    perplexity_model: str = Field(default="sonar-pro", validation_alias="PERPLEXITY_MODEL")

    connect_timeout_seconds: float = Field(
        default=10.0,
        validation_alias="PROVIDER_CONNECT_TIMEOUT_SECONDS",
        gt=0,
    )
    read_timeout_seconds: float = Field(
        default=120.0,
        validation_alias="PROVIDER_READ_TIMEOUT_SECONDS",
        gt=0,
        description="Maximum silence between two network reads before a stream is failed.",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


DEFAULT_CREDIT_COSTS: dict[str, int] = {
    "cognitive": 2000,
    "comprehensive-cognitive": 5000,
    "microcognitive": 500,
    "psychological": 1500,
    "comprehensive-psychological": 4000,
    "micropsychological": 400,
    "psychopathological": 1500,
    "comprehensive-psychopathological": 4000,
    "micropsychopathological": 400,
}


class AnalysisConfig(BaseSettings):
    """Tuning knobs for the streaming analysis workflow."""

    batch_size: int = Field(default=5, ge=1)
    inter_batch_delay_seconds: float = Field(default=10.0, ge=0)
    delay_tick_seconds: float = Field(default=0.1, gt=0)
    preview_percentage: int = Field(default=30, ge=1, le=100)
    preview_strategy: Literal["words", "sentences"] = "words"
    default_credit_cost: int = Field(default=2000, ge=0)
    credit_costs: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_CREDIT_COSTS))

    def credit_cost(self, kind: str) -> int:
        """Return the credits a full-access run of ``kind`` consumes."""

        return self.credit_costs.get(kind, self.default_credit_cost)

    model_config = SettingsConfigDict(
        env_prefix="ANALYSIS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class SecurityConfig(BaseSettings):
    """JWT configuration for resolving the calling account."""

    jwt_secret_key: SecretStr = Field(
        default=SecretStr("change-me"),
        validation_alias="JWT_SECRET",
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    access_token_expires_minutes: int = Field(
        default=60,
        validation_alias="ACCESS_TOKEN_EXPIRES_MINUTES",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Text Analysis Streaming Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    analysis_log_file: str = "logs/analysis_stream.log"
    storage_backend: Literal["sql", "memory"] = "sql"

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # LLM vendors
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)

    # Streaming workflow
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    # Security
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
