"""Configuration settings using pydantic-settings."""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server database
    DATABASE_PATH: str = Field(
        default="data/practice.db",
        description="Path to the server SQLite database (sessions, attempt ledger, mastery)"
    )

    # HTTP server
    HOST: str = Field(default="127.0.0.1", description="Address the submission API binds to")
    PORT: int = Field(default=8080, description="Port the submission API listens on")

    # Client queue
    QUEUE_DATABASE_PATH: str = Field(
        default="data/submission_queue.db",
        description="Path to the client-side SQLite file backing the submission queue"
    )
    API_BASE_URL: str = Field(
        default="http://127.0.0.1:8080",
        description="Base URL of the submission API used by the client queue"
    )
    API_USER_ID: str = Field(
        default="",
        description="User id sent in X-User-Id by the client queue"
    )

    # Delivery
    SUBMIT_TIMEOUT: float = Field(default=10.0, description="Timeout of one submit request in seconds")
    MAX_RETRY_ATTEMPTS: int = Field(default=5, description="Failures before a submission is terminal")
    RETRY_DELAY_BASE: float = Field(default=2.0, description="Base of the exponential backoff in seconds")
    INTER_SUBMISSION_DELAY: float = Field(
        default=1.0,
        description="Pause between two submissions of one queue pass in seconds"
    )
    RECONNECT_STABILIZE_DELAY: float = Field(
        default=1.0,
        description="Wait after connectivity is restored before draining the queue"
    )

    # Connectivity probe
    CONNECTIVITY_CHECK_INTERVAL: float = Field(
        default=15.0,
        description="Seconds between two reachability probes of the API host"
    )
    CONNECTIVITY_CHECK_TIMEOUT: float = Field(
        default=5.0,
        description="TCP connect timeout of one reachability probe"
    )

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    LOG_FILE: str = Field(
        default="",
        description="Optional path to a log file"
    )

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
