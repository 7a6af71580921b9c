"""Configuration management using pydantic-settings."""

import warnings
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EncoderSettings(BaseSettings):
    """Neural text encoder configuration."""

    model_config = SettingsConfigDict(env_prefix="ENCODER_", case_sensitive=False)

    model_id: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Hugging Face model repository. Env var: ENCODER_MODEL_ID",
    )
    revision: str = Field(
        default="main", description="Model revision (branch, tag or commit). Env var: ENCODER_REVISION"
    )
    cache_dir: Optional[str] = Field(
        default=None,
        description="Local directory for downloaded model artifacts. Env var: ENCODER_CACHE_DIR",
    )
    device: str = Field(default="cpu", description="Torch device. Env var: ENCODER_DEVICE")
    max_length: int = Field(
        default=256,
        description="Maximum tokens per input; longer inputs are truncated. Env var: ENCODER_MAX_LENGTH",
    )
    batch_size: int = Field(
        default=8, description="Texts per forward pass. Env var: ENCODER_BATCH_SIZE"
    )
    dimension: int = Field(
        default=384,
        description="Embedding dimension (must match the Qdrant collection). Env var: ENCODER_DIMENSION",
    )
    load_max_retries: int = Field(
        default=3,
        description="Attempts for downloading/loading model artifacts. Env var: ENCODER_LOAD_MAX_RETRIES",
    )
    download_timeout: float = Field(
        default=60.0,
        description="Timeout in seconds for model hub requests. Env var: ENCODER_DOWNLOAD_TIMEOUT",
    )

    @field_validator("batch_size", "dimension", "max_length")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Reject non-positive sizes."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_", case_sensitive=False)

    url: str = Field(
        default="http://localhost:6333", description="Qdrant connection URL"
    )
    location: Optional[str] = Field(
        default=None,
        description="Qdrant location instead of url (e.g. ':memory:'). Env var: QDRANT_LOCATION",
    )
    api_key: Optional[str] = Field(
        default=None, description="Qdrant API key (for Qdrant Cloud). Env var: QDRANT_API_KEY"
    )
    timeout: int = Field(default=30, description="Request timeout in seconds")
    collection_name: str = Field(
        default="legislation_chunks",
        description="Collection holding legislation chunks. Env var: QDRANT_COLLECTION_NAME",
    )
    upsert_batch_size: int = Field(
        default=100,
        description="Points per upsert request. Env var: QDRANT_UPSERT_BATCH_SIZE",
    )


class SegmenterSettings(BaseSettings):
    """Legislative text segmentation thresholds."""

    model_config = SettingsConfigDict(env_prefix="SEGMENTER_", case_sensitive=False)

    min_section_chars: int = Field(
        default=50,
        description="Sections at or below this trimmed length are dropped. Env var: SEGMENTER_MIN_SECTION_CHARS",
    )
    min_paragraph_chars: int = Field(
        default=100,
        description="Fallback accumulator ignores paragraphs at or below this length. "
        "Env var: SEGMENTER_MIN_PARAGRAPH_CHARS",
    )
    max_chunk_words: int = Field(
        default=500,
        description="Fallback accumulator cuts a chunk before exceeding this word count. "
        "Env var: SEGMENTER_MAX_CHUNK_WORDS",
    )


class RetrySettings(BaseSettings):
    """Retry configuration for failed operations."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    max_retries: int = Field(
        default=3, description="Maximum number of retries. Env var: MAX_RETRIES"
    )
    backoff_factor: float = Field(
        default=2.0,
        description="Exponential backoff factor. Env var: RETRY_BACKOFF_FACTOR",
    )
    max_delay: int = Field(
        default=30, description="Maximum delay between retries in seconds. Env var: RETRY_MAX_DELAY"
    )


class SearchSettings(BaseSettings):
    """Query defaults."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_", case_sensitive=False)

    default_limit: int = Field(default=3, description="Results per query. Env var: SEARCH_DEFAULT_LIMIT")
    max_limit: int = Field(default=50, description="Upper bound on results per query. Env var: SEARCH_MAX_LIMIT")


class ServerSettings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    host: str = Field(default="0.0.0.0", description="Server host. Env var: HOST")
    port: int = Field(default=8010, description="HTTP server port. Env var: PORT")
    reload: bool = Field(
        default=False, description="Enable auto-reload (development only). Env var: RELOAD"
    )
    cors_origins: List[str] = Field(
        default=["*"], description="Allowed CORS origins. Env var: CORS_ORIGINS (JSON list)"
    )
    slow_request_ms: float = Field(
        default=2000.0,
        description="Requests slower than this are logged as warnings. Env var: SLOW_REQUEST_MS",
    )


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(
        default="legislation-search", description="Application name. Env var: APP_NAME"
    )
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment. Env var: ENVIRONMENT",
    )
    debug: bool = Field(default=False, description="Enable debug mode. Env var: DEBUG")
    log_level: str = Field(
        default="INFO", description="Logging level. Env var: LOG_LEVEL"
    )
    initialize_collection_on_startup: bool = Field(
        default=False,
        description="Drop and recreate the collection when the API starts. "
        "Env var: INITIALIZE_COLLECTION_ON_STARTUP",
    )

    # Sub-settings
    encoder: Optional[EncoderSettings] = None
    qdrant: Optional[QdrantSettings] = None
    segmenter: Optional[SegmenterSettings] = None
    retry: Optional[RetrySettings] = None
    search: Optional[SearchSettings] = None
    server: Optional[ServerSettings] = None

    @model_validator(mode="after")
    def initialize_nested_settings(self) -> "Settings":
        """Initialize nested settings to ensure they read from environment."""
        if self.encoder is None:
            self.encoder = EncoderSettings()
        if self.qdrant is None:
            self.qdrant = QdrantSettings()
        if self.segmenter is None:
            self.segmenter = SegmenterSettings()
        if self.retry is None:
            self.retry = RetrySettings()
        if self.search is None:
            self.search = SearchSettings()
        if self.server is None:
            self.server = ServerSettings()
        return self

    @field_validator("environment", mode="before")
    @classmethod
    def parse_environment(cls, v):
        """Parse environment from string."""
        if isinstance(v, str):
            try:
                return Environment(v.lower())
            except ValueError:
                return Environment.DEVELOPMENT
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    def validate_configuration(self) -> None:
        """Warn about settings that will likely break retrieval."""
        if self.search.default_limit > self.search.max_limit:
            warnings.warn(
                "SEARCH_DEFAULT_LIMIT exceeds SEARCH_MAX_LIMIT; queries will be capped at the maximum.",
                UserWarning,
            )
        if self.qdrant.location == ":memory:" and not self.is_development:
            warnings.warn(
                "QDRANT_LOCATION=:memory: keeps vectors in process memory only; nothing is persisted.",
                UserWarning,
            )

    def validate_production_settings(self) -> None:
        """Validate that production settings are secure."""
        if self.is_production:
            if self.debug:
                raise ValueError("DEBUG must be False in production")

            if self.qdrant.location == ":memory:":
                raise ValueError(
                    "An in-memory Qdrant cannot be used in production. Set QDRANT_URL instead."
                )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate_configuration()
        try:
            _settings.validate_production_settings()
        except ValueError as e:
            import logging

            logging.error(f"Configuration validation failed: {e}")
            if _settings.is_production:
                raise  # Fail fast in production
    return _settings
