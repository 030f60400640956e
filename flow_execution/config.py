from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Step Processor endpoint (the execute-button-processor function)
    PROCESSOR_BASE_URL: str = "http://localhost:54321"
    PROCESSOR_PATH: str = "/functions/v1/execute-button-processor"
    # Security: Read from .env, never hardcode real keys here
    PROCESSOR_API_KEY: str | None = None
    PROCESSOR_TIMEOUT_SECONDS: float = 60.0

    # Sent as userId when the caller does not identify itself
    DEFAULT_USER_ID: str = "user"

    # Where flow definitions come from
    FLOW_SOURCE: Literal["static", "database"] = "static"

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./flow_execution.db"

    # Optional, enables static map images on confirmation prompts
    GOOGLE_MAPS_API_KEY: str | None = None

    # Live sessions kept in memory; the oldest are evicted beyond this
    MAX_SESSIONS: int = 1000

    LOG_LEVEL: str = "INFO"

    # Loads from a .env file in the root directory
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

# Singleton instance
settings = Settings()
