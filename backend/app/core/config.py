"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Classroom Attempts API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security
    # IMPORTANT: These MUST be set in .env file - no defaults for security
    SECRET_KEY: str = Field(..., description="Application secret key (required)")
    JWT_SECRET_KEY: str = Field(..., description="JWT signing secret key (required)")
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # Admin API (test definitions, enrollments, expiry sweep)
    ADMIN_TOKEN: str = Field(
        default="",
        description="Admin API token for instructor/admin endpoints (required for admin endpoints)",
    )

    # Live test scheduling defaults
    # Students may join this many minutes before the scheduled start
    LIVE_JOIN_LEAD_MINUTES: int = Field(default=5, ge=0)
    # Extra minutes added after the nominal duration before the hard end
    LIVE_BUFFER_MINUTES: int = Field(default=5, ge=0)

    # Flexible test duration used when a definition omits one
    FLEXIBLE_DEFAULT_DURATION_MINUTES: int = Field(default=90, gt=0)

    # Expiry sweep: finalizes in-progress attempts whose deadline has passed
    EXPIRY_SWEEP_ENABLED: bool = False
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 60
    EXPIRY_SWEEP_BATCH_SIZE: int = 200

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    # OpenTelemetry metrics
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "classroom-attempts"
    OTEL_METRICS_ENABLED: bool = False
    OTEL_METRICS_EXPORT_INTERVAL_MILLIS: int = 60000  # 60 seconds

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_sweep_config(self) -> Self:
        """Validate expiry sweep configuration at startup."""
        if self.EXPIRY_SWEEP_INTERVAL_SECONDS <= 0:
            raise ValueError(
                "EXPIRY_SWEEP_INTERVAL_SECONDS must be positive, "
                f"got {self.EXPIRY_SWEEP_INTERVAL_SECONDS}"
            )
        if self.EXPIRY_SWEEP_BATCH_SIZE <= 0:
            raise ValueError(
                "EXPIRY_SWEEP_BATCH_SIZE must be positive, "
                f"got {self.EXPIRY_SWEEP_BATCH_SIZE}"
            )
        return self


# mypy doesn't understand that pydantic_settings loads required fields from env vars
settings = Settings()  # type: ignore[call-arg]
