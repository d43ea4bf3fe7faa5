"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="coursegate", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=1, description="Number of workers")
    api_reload: bool = Field(default=True, description="Enable auto-reload")

    # Identity (tokens are issued by the external identity service)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        description="JWT verification key (shared with the identity service)",
    )
    auth_algorithm: str = Field(default="HS256", description="JWT algorithm")

    # Redis
    redis_enabled: bool = Field(
        default=True, description="Publish certificate events through Redis"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="coursegate", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_to_file: bool = Field(default=True, description="Write rotating log files")
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    # Assessment policy
    default_quiz_passing_score: int = Field(
        default=80, ge=0, le=100, description="Lesson quiz passing score"
    )
    default_test_passing_score: int = Field(
        default=70, ge=0, le=100, description="Chapter test passing score"
    )
    default_exam_passing_score: int = Field(
        default=80, ge=0, le=100, description="Final exam passing score"
    )
    default_test_cooldown_hours: float = Field(
        default=3, ge=0, description="Wait after a failed chapter test"
    )
    default_exam_cooldown_hours: float = Field(
        default=24, ge=0, description="Wait after a failed final exam"
    )
    unlimited_quiz_retries: bool = Field(
        default=True, description="Lesson quizzes ignore cooldowns"
    )
    quiz_cooldown_hours: float = Field(
        default=0,
        ge=0,
        description="Wait after a failed quiz when retries are limited",
    )
    assessment_minutes_per_question: float = Field(
        default=1, gt=0, description="Time budget per question in a session"
    )
    assessment_session_retention_days: int = Field(
        default=30, gt=0, description="How long terminal sessions are kept for audit"
    )
    abandon_counts_as_attempt: bool = Field(
        default=False,
        description="Treat an abandoned session as a failed attempt",
    )
    progress_max_write_retries: int = Field(
        default=5, ge=1, description="Optimistic write retries on progress rows"
    )

    # Certificates
    certificate_prefix: str = Field(
        default="MIC-", description="Prefix for certificate numbers"
    )
    hipaa_certificate_title: str = Field(
        default="HIPAA for Medical Interpreters",
        description="Course title printed on the companion HIPAA certificate",
    )
    certificate_events_channel: str = Field(
        default="certificates:issued",
        description="Redis channel for certificate rendering and delivery",
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
